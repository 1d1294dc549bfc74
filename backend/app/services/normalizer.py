"""
Response Normalizer - one stable student shape for every ranking strategy.
"""

from app.models.student import Student

# Derived fields rendered as rounded floats rather than integers
FLOAT_FIELDS = {"avg_rating": 2}


def serialize_student(student: Student, derived_field: str = None, value=None) -> dict:
    """
    Serialize a Student ORM object to the directory row shape.

    Base fields are always present; when the ranking used a derived sort
    key exactly one extra field carries its value.
    """
    result = {
        "id": student.id,
        "login": student.login,
        "email": student.email,
        "first_name": student.first_name,
        "last_name": student.last_name,
        "displayname": student.displayname,
        "usual_full_name": student.usual_full_name,
        "pool_month": student.pool_month,
        "pool_year": student.pool_year,
        "wallet": student.wallet,
        "correction_point": student.correction_point,
        "level": student.level,
        "active?": bool(student.active),
        "alumni?": bool(student.alumni),
        "grade": student.grade,
        "campusId": student.campus_id,
        "image": student.image_dict,
    }

    if derived_field:
        if derived_field in FLOAT_FIELDS:
            result[derived_field] = round(float(value or 0), FLOAT_FIELDS[derived_field])
        else:
            result[derived_field] = int(value or 0)

    return result
