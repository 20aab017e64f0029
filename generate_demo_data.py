import sys
import random
import argparse
from decimal import Decimal, ROUND_HALF_UP
from faker import Faker

# Import the models
from models import db, Program, Batch, Section, Course, CourseOutcome, ProgramOutcome, Assessment, Question
from models import Student, Enrollment, StudentMark, IndirectAttainment
from models import course_outcome_program_outcome, question_course_outcome

# Initialize Faker for generating realistic data
fake = Faker()

DEFAULT_PROGRAM_OUTCOMES = [
    ("PO1", "Engineering knowledge: apply mathematics, science and engineering fundamentals to complex problems."),
    ("PO2", "Problem analysis: identify, formulate and analyze complex engineering problems."),
    ("PO3", "Design/development of solutions for complex problems meeting specified needs."),
    ("PO4", "Conduct investigations of complex problems using research-based knowledge and methods."),
    ("PO5", "Modern tool usage: create, select and apply appropriate techniques and IT tools."),
    ("PO6", "The engineer and society: assess societal, health, safety and legal issues."),
    ("PO7", "Environment and sustainability: understand the impact of engineering solutions."),
    ("PO8", "Ethics: apply ethical principles and commit to professional ethics."),
    ("PO9", "Individual and team work in diverse teams and multidisciplinary settings."),
    ("PO10", "Communication: communicate effectively on complex engineering activities."),
    ("PO11", "Project management and finance applied to one's own work and in teams."),
    ("PO12", "Life-long learning in the broadest context of technological change."),
]

COURSE_TEMPLATES = [
    ("CS201", "Data Structures"),
    ("CS202", "Database Systems"),
    ("CS301", "Operating Systems"),
    ("CS302", "Computer Networks"),
    ("CS303", "Software Engineering"),
]

# name, type, weightage, question count
ASSESSMENT_TEMPLATES = [
    ("Midterm Exam", "exam", 30, 4),
    ("Final Exam", "exam", 40, 5),
    ("Quiz 1", "quiz", 10, 3),
    ("Assignment 1", "assignment", 10, 2),
    ("Course Project", "project", 10, 1),
]

def quantize(value):
    return Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

def generate_program(code="CSE"):
    """Create a program with the standard twelve program outcomes"""
    program = Program(code=code, name=f"B.Tech {fake.job().split(',')[0]} Engineering"[:150])
    db.session.add(program)
    db.session.flush()
    for po_code, description in DEFAULT_PROGRAM_OUTCOMES:
        db.session.add(ProgramOutcome(program_id=program.id, code=po_code, description=description))
    db.session.flush()
    return program

def generate_batch(program, start_year, section_names=("A", "B")):
    batch = Batch(program_id=program.id, name=f"{start_year}-{start_year + 4}",
                  start_year=start_year, end_year=start_year + 4)
    db.session.add(batch)
    db.session.flush()
    sections = []
    for name in section_names:
        section = Section(batch_id=batch.id, name=name)
        db.session.add(section)
        sections.append(section)
    db.session.flush()
    return batch, sections

def generate_students(batch, sections, per_section):
    students = []
    for section in sections:
        for _ in range(per_section):
            student = Student(
                roll_no=f"{batch.start_year}{section.name}{len(students) + 1:03d}",
                name=fake.name(),
                batch_id=batch.id,
                section_id=section.id
            )
            db.session.add(student)
            students.append(student)
    db.session.flush()
    return students

def generate_course(batch, template, academic_year, status="COMPLETED"):
    code, name = template
    course = Course(code=code, name=name, semester=f"Fall {batch.start_year + 2}", academic_year=academic_year,
                    batch_id=batch.id, status=status, target_percentage=60, level1_threshold=60,
                    level2_threshold=75, level3_threshold=85)
    db.session.add(course)
    db.session.flush()

    outcomes = []
    for i in range(1, random.randint(4, 6) + 1):
        outcome = CourseOutcome(course_id=course.id, code=f"CO{i}",
                                description=fake.sentence(nb_words=10))
        db.session.add(outcome)
        outcomes.append(outcome)
    db.session.flush()
    return course, outcomes

def generate_assessments(course, outcomes):
    """Assessments with questions, each question mapped to one or two COs"""
    questions = []
    for name, kind, weightage, count in ASSESSMENT_TEMPLATES:
        assessment = Assessment(course_id=course.id, name=name, type=kind, weightage=weightage,
                                max_marks=0)
        db.session.add(assessment)
        db.session.flush()
        total = Decimal('0')
        for number in range(1, count + 1):
            max_marks = quantize(random.choice([5, 10, 10, 15, 20]))
            question = Question(assessment_id=assessment.id, number=str(number), max_marks=max_marks,
                                text=fake.sentence(nb_words=8))
            db.session.add(question)
            db.session.flush()
            total += max_marks
            for outcome in random.sample(outcomes, k=min(len(outcomes), random.choice([1, 1, 2]))):
                db.session.execute(question_course_outcome.insert().values(
                    question_id=question.id, course_outcome_id=outcome.id))
            questions.append(question)
        assessment.max_marks = total
    db.session.flush()
    return questions

def generate_marks(students, questions, skip_rate=0.1):
    """Marks with some unattempted questions (no row or NULL) and occasional recorded zeros"""
    for student in students:
        ability = random.uniform(0.35, 0.95)
        for question in questions:
            roll = random.random()
            if roll < skip_rate / 2:
                continue
            if roll < skip_rate:
                obtained = None
            else:
                fraction = min(1.0, max(0.0, random.gauss(ability, 0.15)))
                obtained = quantize(float(question.max_marks) * fraction)
            db.session.add(StudentMark(student_id=student.id, question_id=question.id, obtained_marks=obtained))
    db.session.flush()

def generate_co_po_mappings(outcomes, program_outcomes):
    for outcome in outcomes:
        for po in random.sample(program_outcomes, k=random.randint(2, 4)):
            db.session.execute(course_outcome_program_outcome.insert().values(
                course_outcome_id=outcome.id, program_outcome_id=po.id,
                level=random.choice([1, 2, 2, 3, 3]), is_active=True))

def generate_indirect_attainment(program_outcomes, batch, academic_year):
    for po in program_outcomes:
        db.session.add(IndirectAttainment(
            po_id=po.id, batch_id=batch.id, academic_year=academic_year,
            alumni_survey=quantize(random.uniform(1.5, 3.0)),
            exit_survey=quantize(random.uniform(1.5, 3.0)),
            employer_survey=quantize(random.uniform(1.0, 3.0)) if random.random() < 0.7 else None
        ))

def generate_demo_data(course_count=3, students_per_section=15, start_year=2021, seed=None):
    """Populate the database bound to the current app context. Returns the created program."""
    if seed is not None:
        random.seed(seed)
        fake.seed_instance(seed)

    academic_year = f"{start_year + 2}-{str(start_year + 3)[-2:]}"
    program = generate_program()
    batch, sections = generate_batch(program, start_year)
    students = generate_students(batch, sections, students_per_section)
    program_outcomes = ProgramOutcome.query.filter_by(program_id=program.id).order_by(ProgramOutcome.id).all()

    for template in COURSE_TEMPLATES[:course_count]:
        course, outcomes = generate_course(batch, template, academic_year)
        for student in students:
            db.session.add(Enrollment(student_id=student.id, course_id=course.id))
        questions = generate_assessments(course, outcomes)
        generate_marks(students, questions)
        generate_co_po_mappings(outcomes, program_outcomes)
        print(f"Generated course {course.code} with {len(outcomes)} COs and {len(questions)} questions")

    generate_indirect_attainment(program_outcomes, batch, academic_year)
    db.session.commit()
    return program

def main():
    parser = argparse.ArgumentParser(description='Generate OBE demo data')
    parser.add_argument('--courses', type=int, default=3, help='Number of courses to create (max 5)')
    parser.add_argument('--students', type=int, default=15, help='Students per section')
    parser.add_argument('--start-year', type=int, default=2021, help='Batch start year')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for reproducible data')
    args = parser.parse_args()

    print("Generating demo data for the attainment engine...")
    from app import create_app
    app = create_app()
    with app.app_context():
        if Program.query.filter_by(code="CSE").first():
            print("Demo program CSE already exists, nothing to do")
            return
        try:
            program = generate_demo_data(min(args.courses, len(COURSE_TEMPLATES)), args.students,
                                         args.start_year, args.seed)
        except Exception as e:
            db.session.rollback()
            print(f"Fatal Error during data generation: {e}")
            sys.exit(1)
        print(f"Demo data generated for program {program.code}")

if __name__ == "__main__":
    main()
