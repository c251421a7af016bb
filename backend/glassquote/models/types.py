from sqlalchemy import Enum as SAEnum


def LowercaseEnum(enum_cls, **kwargs) -> SAEnum:
    """String-backed enum column persisting the lowercase ``.value`` of each member."""
    kwargs.setdefault("values_callable", lambda enum: [e.value for e in enum])
    kwargs.setdefault("native_enum", False)
    kwargs.setdefault("validate_strings", True)
    return SAEnum(enum_cls, **kwargs)
