CLASS_NUMBERS = tuple(range(1, 13))
CLASS_CHOICES = tuple((str(number), f'Class {number}') for number in CLASS_NUMBERS)

DIVISIONS = ('A', 'B', 'C', 'D', 'E')
DIVISION_CHOICES = tuple((division, division) for division in DIVISIONS)

# Classes 11 and 12 configure development fees per division.
DIVISION_PRICED_CLASSES = {'11', '12'}

SECTION_LP = 'lp'
SECTION_UP = 'up'
SECTION_HS = 'hs'
SECTION_HSS = 'hss'

SECTIONS = (
    {'code': SECTION_LP, 'name': 'LP (Lower Primary)', 'classes': (1, 2, 3, 4)},
    {'code': SECTION_UP, 'name': 'UP (Upper Primary)', 'classes': (5, 6, 7)},
    {'code': SECTION_HS, 'name': 'HS (High School)', 'classes': (8, 9, 10)},
    {'code': SECTION_HSS, 'name': 'HSS (Higher Secondary)', 'classes': (11, 12)},
)
SECTION_CODES = tuple(section['code'] for section in SECTIONS)
SECTION_CHOICES = tuple((section['code'], section['name']) for section in SECTIONS)


def class_number(value):
    """Return the class as an int, or None when it is not a number."""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def section_for_class(value):
    number = class_number(value)
    if number is None:
        return None
    for section in SECTIONS:
        if number in section['classes']:
            return section['code']
    return None


def get_section(code):
    for section in SECTIONS:
        if section['code'] == code:
            return section
    return None


def class_division_key(school_class, division):
    return f"{school_class}-{division}"


def class_teacher_keys(section_code=None):
    """Class-teacher keys ("5-A") for one section, or for all sections."""
    sections = [get_section(section_code)] if section_code else list(SECTIONS)
    keys = []
    for section in sections:
        if section is None:
            continue
        for number in section['classes']:
            for division in DIVISIONS:
                keys.append(class_division_key(number, division))
    return keys
