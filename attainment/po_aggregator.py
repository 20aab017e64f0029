"""
Program outcome attainment from course-level CO attainment.

Direct attainment of a PO is the mean of the attainment levels (0-3) of the
COs mapped to it, weighted by the CO-PO correlation level. The final figure
blends direct and indirect (survey) attainment with the configured weights.
"""
from decimal import Decimal

from attainment.values import POAttainment, round_decimal, ONE_PLACE, ZERO, HUNDRED

STATUS_NOT_ATTAINED = 'Not Attained'
STATUS_LEVEL_1 = 'Level 1'
STATUS_LEVEL_2 = 'Level 2'
STATUS_LEVEL_3 = 'Level 3'

LOW_COVERAGE_PERCENT = Decimal('80')
LOW_MAPPING_LEVEL = Decimal('2')


def classify_po_status(final_attainment, po_config):
    if final_attainment >= po_config.level3:
        return STATUS_LEVEL_3
    if final_attainment >= po_config.level2:
        return STATUS_LEVEL_2
    if final_attainment >= po_config.level1:
        return STATUS_LEVEL_1
    return STATUS_NOT_ATTAINED


def calculate_direct_attainment(contributions):
    """Σ(CO attainment x level) / Σ level, or None when nothing contributed"""
    level_total = sum(c.level for c in contributions)
    if level_total <= 0:
        return None
    weighted = sum((c.weighted_value for c in contributions), ZERO)
    return weighted / level_total


def blend_attainment(direct, indirect, weights):
    """Final attainment; without survey data the direct figure stands alone"""
    if direct is None:
        return ZERO
    if indirect is None:
        return direct
    return weights.direct_weight * direct + weights.indirect_weight * indirect


def calculate_po_attainment(po, contributions, mapping_levels, total_cos, indirect, weights, po_config):
    """
    Attainment of one PO.

    Args:
        po: OutcomeInfo of the program outcome
        contributions: POContribution list for mappings whose CO had results
        mapping_levels: correlation levels of every active mapping to this PO,
            including COs without results
        total_cos: number of active COs across in-scope courses
        indirect: survey attainment on the 0-3 scale, or None
        weights: WeightConfig
        po_config: POConfig
    """
    direct = calculate_direct_attainment(contributions)
    final = round_decimal(blend_attainment(direct, indirect, weights))
    mapped_cos = len({c.co.id for c in contributions})
    avg_mapping_level = (Decimal(sum(mapping_levels)) / len(mapping_levels)) if mapping_levels else ZERO
    coverage = Decimal(mapped_cos) / total_cos * HUNDRED if total_cos else ZERO

    return POAttainment(
        po=po,
        target_level=po_config.target_level,
        direct_attainment=round_decimal(direct) if direct is not None else None,
        indirect_attainment=round_decimal(indirect) if indirect is not None else None,
        final_attainment=final,
        status=classify_po_status(final, po_config),
        attained=direct is not None and final >= po_config.target_level,
        total_cos=total_cos,
        mapped_cos=mapped_cos,
        avg_mapping_level=round_decimal(avg_mapping_level, ONE_PLACE),
        co_coverage_factor=round_decimal(coverage),
        contributions=tuple(contributions),
    )


def summarize_po_attainments(po_attainments, po_config):
    """Program level statistics over a list of POAttainment"""
    total = len(po_attainments)
    attained = sum(1 for p in po_attainments if p.attained)
    compliance = Decimal(attained) / total * HUNDRED if total else ZERO
    overall = sum((p.final_attainment for p in po_attainments), ZERO) / total if total else ZERO
    return {
        'target_level': po_config.target_level,
        'overall_attainment': round_decimal(overall),
        'nba_compliance_score': round_decimal(compliance),
        'total_pos': total,
        'attained_pos': attained,
        'level3_pos': sum(1 for p in po_attainments if p.status == STATUS_LEVEL_3),
        'level2_pos': sum(1 for p in po_attainments if p.status == STATUS_LEVEL_2),
        'level1_pos': sum(1 for p in po_attainments if p.status == STATUS_LEVEL_1),
        'not_attained_pos': sum(1 for p in po_attainments if p.status == STATUS_NOT_ATTAINED),
        'is_compliant': total > 0 and compliance >= po_config.min_compliance_fraction * HUNDRED,
        'recommendations': tuple(generate_recommendations(po_attainments)),
    }


def generate_recommendations(po_attainments):
    recommendations = []
    if not po_attainments:
        return recommendations

    not_attained = [p for p in po_attainments if p.status == STATUS_NOT_ATTAINED]
    level1 = [p for p in po_attainments if p.status == STATUS_LEVEL_1]
    if not_attained:
        recommendations.append(f"{len(not_attained)} PO(s) not attained. Review mapping levels and CO coverage.")
    if level1:
        recommendations.append(f"{len(level1)} PO(s) at minimum level. Consider strengthening CO-PO correlations.")

    avg_coverage = sum((p.co_coverage_factor for p in po_attainments), ZERO) / len(po_attainments)
    if avg_coverage < LOW_COVERAGE_PERCENT:
        recommendations.append("Low CO coverage detected. Map more COs to POs for better attainment.")
    avg_level = sum((p.avg_mapping_level for p in po_attainments), ZERO) / len(po_attainments)
    if avg_level < LOW_MAPPING_LEVEL:
        recommendations.append("Low mapping levels detected. Use stronger correlations (Level 2-3) where appropriate.")

    if not recommendations:
        recommendations.append("Excellent PO attainment! Consider maintaining current mapping strategy.")
    return recommendations
