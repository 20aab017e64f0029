from flask import make_response, stream_with_context
from datetime import datetime
import csv
import io
import logging
import urllib.parse


def export_to_excel_csv(rows, filename, headers):
    """
    Stream rows as an Excel-compatible CSV download.

    Args:
        rows: iterable of dicts keyed by the header names
        filename: file name without extension; a timestamp is appended
        headers: column headers, also used as dict keys

    Returns:
        A streamed Flask response
    """
    def generate_csv():
        output = io.StringIO()
        writer = csv.writer(output, delimiter=';') # Semicolon for Excel

        # UTF-8 BOM and separator hint so Excel opens the file correctly
        yield b'\xef\xbb\xbf'
        output.write('sep=;\n')
        writer.writerow(headers)
        yield output.getvalue().encode('utf-8')
        output.seek(0)
        output.truncate(0)

        for row in rows:
            writer.writerow([row.get(key, '') for key in headers])
            yield output.getvalue().encode('utf-8')
            output.seek(0)
            output.truncate(0)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    full_filename = f"{filename}_{timestamp}.csv"
    logging.info(f"Exporting data stream to: {full_filename}")

    response = make_response(stream_with_context(generate_csv()))
    ascii_filename = full_filename.encode('ascii', 'replace').decode()
    encoded_filename = urllib.parse.quote(full_filename)
    response.headers['Content-Disposition'] = \
        f"attachment; filename=\"{ascii_filename}\"; filename*=UTF-8''{encoded_filename}"
    response.headers['Content-Type'] = 'text/csv; charset=utf-8'
    return response
