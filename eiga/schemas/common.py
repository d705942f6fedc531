from typing import Annotated, Any

from pydantic import BeforeValidator

from eiga.services.validation import parse_booleanish


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _optional_booleanish(v: Any) -> bool | None:
    v = _blank_to_none(v)
    return None if v is None else parse_booleanish(v)


# form posts send "on"/"1"/"true"; JSON sends real booleans
Booleanish = Annotated[bool, BeforeValidator(parse_booleanish)]
OptionalBooleanish = Annotated[bool | None, BeforeValidator(_optional_booleanish)]
OptionalInt = Annotated[int | None, BeforeValidator(_blank_to_none)]
