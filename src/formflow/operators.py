"""
Operator catalog for validation rules.

Each operator is an OperatorDefinition whose `check(value, operand, now)`
answers one plain question ("is value > operand?", "is value an email?").
The check never decides pass/fail: that polarity belongs to
`formflow.validation`, which treats comparison operators as failure
triggers and everything else as pass conditions.

Operand shapes:
    none      no operand (isEmail, isEmpty, ...)
    single    one scalar
    array     a list (in, between, ...); a scalar is read as a 1-list
              or, for ranges, as [value, value]
    variable  {"type": "variable", "value": "<field>"} entries
    mixed     variable and literal entries together

Dates are read like a browser would read them: date/datetime objects,
ISO-8601 strings or epoch milliseconds. Unreadable dates never satisfy a
date check.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from formflow.coercion import is_empty, is_number, loose_equals, to_number, to_text

MS_PER_YEAR = 365.25 * 24 * 60 * 60 * 1000

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-\(\)]+$")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_HOST_SCHEMES = frozenset({"http", "https", "ftp", "ws", "wss"})


class OperatorCategory(Enum):
    COMPARISON = "comparison"
    STRING = "string"
    ARRAY = "array"
    LOGICAL = "logical"
    FORMAT = "format"
    DATE = "date"


class ValueShape(Enum):
    NONE = "none"
    SINGLE = "single"
    ARRAY = "array"
    VARIABLE = "variable"
    MIXED = "mixed"


Check = Callable[[Any, Any, datetime], bool]


@dataclass(frozen=True)
class OperatorDefinition:
    """
    One catalog entry.

    Properties:
        name: Operator token stored in rules ("==", "minLength", ...)
        label: Editor label
        category: OperatorCategory
        value_shape: Expected operand shape
        check: (value, operand, now) -> bool
        description: Editor help text
        supports_variables: Operand may reference other fields
    """

    name: str
    label: str
    category: OperatorCategory
    value_shape: ValueShape
    check: Check
    description: Optional[str] = None
    supports_variables: bool = False

    @property
    def is_failure_trigger(self) -> bool:
        return self.category is OperatorCategory.COMPARISON


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def as_list(operand: Any) -> List[Any]:
    if isinstance(operand, (list, tuple)):
        return list(operand)
    return [operand]


def as_range(operand: Any) -> Tuple[Any, Any]:
    """[min, max] from a list operand, or [v, v] from a scalar."""
    if isinstance(operand, (list, tuple)):
        padded = list(operand) + [None, None]
        return padded[0], padded[1]
    return operand, operand


def strictly_equal(left: Any, right: Any) -> bool:
    """Equality without string/number coercion (1 and True differ)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def parse_date(value: Any) -> Optional[datetime]:
    """
    Read a date-like value as a naive local datetime.

    Returns None for missing or unreadable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif is_number(value):
        if not math.isfinite(value):
            return None
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def age_in_years(birth: datetime, now: datetime) -> int:
    """
    Whole years between two instants using a 365.25-day year.

    This is an approximation: around birthdays the result can be one year
    off from calendar age, depending on the leap days in between.
    """
    elapsed_ms = (now - birth).total_seconds() * 1000
    return math.floor(elapsed_ms / MS_PER_YEAR)


def js_weekday(moment: datetime) -> int:
    """Day of week with 0 = Sunday."""
    return (moment.weekday() + 1) % 7


def _numbers(*values: Any) -> Optional[Tuple[float, ...]]:
    converted = tuple(to_number(v) for v in values)
    if any(math.isnan(n) for n in converted):
        return None
    return converted


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def _ordering(compare: Callable[[float, float], bool]) -> Check:
    def check(value, operand, now):
        numbers = _numbers(value, operand)
        return numbers is not None and compare(*numbers)
    return check


def _text(compare: Callable[[str, str], bool]) -> Check:
    def check(value, operand, now):
        return compare(to_text(value), to_text(operand))
    return check


def _length(compare: Callable[[int, float], bool]) -> Check:
    def check(value, operand, now):
        limit = to_number(operand)
        return not math.isnan(limit) and compare(len(to_text(value)), limit)
    return check


def _matches(value, operand, now):
    return re.search(to_text(operand), to_text(value)) is not None


def _in(value, operand, now):
    return any(strictly_equal(value, item) for item in as_list(operand))


def _contains_any(value, operand, now):
    if not isinstance(value, (list, tuple)):
        return False
    wanted = as_list(operand)
    return any(_in(v, wanted, now) for v in value)


def _contains_all(value, operand, now):
    if not isinstance(value, (list, tuple)):
        return False
    return all(_in(w, value, now) for w in as_list(operand))


def _contains_none(value, operand, now):
    if not isinstance(value, (list, tuple)):
        return False
    return not _contains_any(value, operand, now)


def _between(value, operand, now):
    low, high = as_range(operand)
    numbers = _numbers(value, low, high)
    return numbers is not None and numbers[1] <= numbers[0] <= numbers[2]


def _not_between(value, operand, now):
    low, high = as_range(operand)
    numbers = _numbers(value, low, high)
    return numbers is not None and (numbers[0] < numbers[1] or numbers[0] > numbers[2])


def _is_url(value, operand, now):
    text = to_text(value).strip()
    if not text or any(c.isspace() for c in text):
        return False
    parts = urlsplit(text)
    if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
        return False
    if parts.scheme.lower() in _HOST_SCHEMES:
        return bool(parts.hostname)
    return len(text) > len(parts.scheme) + 1


def _is_number(value, operand, now):
    return math.isfinite(to_number(value))


def _is_integer(value, operand, now):
    number = to_number(value)
    return math.isfinite(number) and number.is_integer()


def _dates(compare: Callable[[datetime, datetime], bool]) -> Check:
    def check(value, operand, now):
        left, right = parse_date(value), parse_date(operand)
        return left is not None and right is not None and compare(left, right)
    return check


def _date_between(value, operand, now):
    low, high = as_range(operand)
    moment, start, end = parse_date(value), parse_date(low), parse_date(high)
    if moment is None or start is None or end is None:
        return False
    return start <= moment <= end


def _date_not_between(value, operand, now):
    low, high = as_range(operand)
    moment, start, end = parse_date(value), parse_date(low), parse_date(high)
    if moment is None or start is None or end is None:
        return False
    return moment < start or moment > end


def _relative_to_now(compare: Callable[[datetime, datetime], bool]) -> Check:
    def check(value, operand, now):
        moment = parse_date(value)
        return moment is not None and compare(moment, now)
    return check


def _weekday(predicate: Callable[[int], bool]) -> Check:
    def check(value, operand, now):
        moment = parse_date(value)
        return moment is not None and predicate(js_weekday(moment))
    return check


def _date_part(extract: Callable[[datetime], int]) -> Check:
    def check(value, operand, now):
        moment = parse_date(value)
        wanted = to_number(operand)
        return moment is not None and not math.isnan(wanted) and extract(moment) == wanted
    return check


def _age(compare: Callable[[int, float], bool]) -> Check:
    def check(value, operand, now):
        birth = parse_date(value)
        limit = to_number(operand)
        return birth is not None and not math.isnan(limit) and compare(age_in_years(birth, now), limit)
    return check


def _age_between(value, operand, now):
    birth = parse_date(value)
    low, high = as_range(operand)
    limits = _numbers(low, high)
    if birth is None or limits is None:
        return False
    return limits[0] <= age_in_years(birth, now) <= limits[1]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

_C, _S, _A, _L, _F, _D = (
    OperatorCategory.COMPARISON,
    OperatorCategory.STRING,
    OperatorCategory.ARRAY,
    OperatorCategory.LOGICAL,
    OperatorCategory.FORMAT,
    OperatorCategory.DATE,
)

_DEFINITIONS: Sequence[OperatorDefinition] = (
    # Comparison (failure triggers)
    OperatorDefinition("==", "Equals", _C, ValueShape.SINGLE,
                       lambda v, o, now: loose_equals(v, o), supports_variables=True),
    OperatorDefinition("!=", "Not equals", _C, ValueShape.SINGLE,
                       lambda v, o, now: not loose_equals(v, o), supports_variables=True),
    OperatorDefinition(">", "Greater than", _C, ValueShape.SINGLE,
                       _ordering(lambda a, b: a > b), supports_variables=True),
    OperatorDefinition(">=", "Greater than or equal", _C, ValueShape.SINGLE,
                       _ordering(lambda a, b: a >= b), supports_variables=True),
    OperatorDefinition("<", "Less than", _C, ValueShape.SINGLE,
                       _ordering(lambda a, b: a < b), supports_variables=True),
    OperatorDefinition("<=", "Less than or equal", _C, ValueShape.SINGLE,
                       _ordering(lambda a, b: a <= b), supports_variables=True),

    # String
    OperatorDefinition("contains", "Contains", _S, ValueShape.SINGLE,
                       _text(lambda h, n: n in h), "Text contains substring"),
    OperatorDefinition("notContains", "Does not contain", _S, ValueShape.SINGLE,
                       _text(lambda h, n: n not in h), "Text does not contain substring"),
    OperatorDefinition("startsWith", "Starts with", _S, ValueShape.SINGLE,
                       _text(lambda h, n: h.startswith(n))),
    OperatorDefinition("endsWith", "Ends with", _S, ValueShape.SINGLE,
                       _text(lambda h, n: h.endswith(n))),
    OperatorDefinition("matches", "Matches pattern", _S, ValueShape.SINGLE,
                       _matches, "Matches regex pattern"),
    OperatorDefinition("lengthEquals", "Length equals", _S, ValueShape.SINGLE,
                       _length(lambda n, limit: n == limit), "Text length equals value"),
    OperatorDefinition("lengthGreaterThan", "Length greater than", _S, ValueShape.SINGLE,
                       _length(lambda n, limit: n > limit), "Text length greater than value"),
    OperatorDefinition("lengthLessThan", "Length less than", _S, ValueShape.SINGLE,
                       _length(lambda n, limit: n < limit), "Text length less than value"),
    OperatorDefinition("minLength", "Minimum length", _S, ValueShape.SINGLE,
                       _length(lambda n, limit: n >= limit), "Text has minimum length"),
    OperatorDefinition("maxLength", "Maximum length", _S, ValueShape.SINGLE,
                       _length(lambda n, limit: n <= limit), "Text has maximum length"),

    # Array
    OperatorDefinition("in", "In array", _A, ValueShape.ARRAY,
                       _in, "Value is in the list"),
    OperatorDefinition("notIn", "Not in array", _A, ValueShape.ARRAY,
                       lambda v, o, now: not _in(v, o, now), "Value is not in the list"),
    OperatorDefinition("containsAny", "Contains any of", _A, ValueShape.ARRAY,
                       _contains_any, "Contains at least one value from list"),
    OperatorDefinition("containsAll", "Contains all of", _A, ValueShape.ARRAY,
                       _contains_all, "Contains all values from list"),
    OperatorDefinition("containsNone", "Contains none of", _A, ValueShape.ARRAY,
                       _contains_none, "Contains no values from list"),

    # Logical
    OperatorDefinition("isEmpty", "Is empty", _L, ValueShape.NONE,
                       lambda v, o, now: is_empty(v), "Field has no value"),
    OperatorDefinition("isNotEmpty", "Is not empty", _L, ValueShape.NONE,
                       lambda v, o, now: not is_empty(v), "Field has a value"),
    OperatorDefinition("between", "Between", _L, ValueShape.ARRAY,
                       _between, "Value is between two values"),
    OperatorDefinition("notBetween", "Not between", _L, ValueShape.ARRAY,
                       _not_between, "Value is not between two values"),

    # Format
    OperatorDefinition("isEmail", "Is valid email", _F, ValueShape.NONE,
                       lambda v, o, now: EMAIL_RE.match(to_text(v)) is not None,
                       "Value is a valid email address"),
    OperatorDefinition("isUrl", "Is valid URL", _F, ValueShape.NONE,
                       _is_url, "Value is a valid URL"),
    OperatorDefinition("isNumber", "Is valid number", _F, ValueShape.NONE,
                       _is_number, "Value is a valid number"),
    OperatorDefinition("isInteger", "Is valid integer", _F, ValueShape.NONE,
                       _is_integer, "Value is a valid integer"),
    OperatorDefinition("isDate", "Is valid date", _F, ValueShape.NONE,
                       lambda v, o, now: parse_date(v) is not None, "Value is a valid date"),
    OperatorDefinition("isPhone", "Is valid phone", _F, ValueShape.NONE,
                       lambda v, o, now: PHONE_RE.match(to_text(v)) is not None,
                       "Value is a valid phone number"),

    # Date
    OperatorDefinition("dateEquals", "Date equals", _D, ValueShape.SINGLE,
                       _dates(lambda a, b: a.date() == b.date()),
                       "Date is exactly equal to value"),
    OperatorDefinition("dateNotEquals", "Date not equals", _D, ValueShape.SINGLE,
                       _dates(lambda a, b: a.date() != b.date()),
                       "Date is not equal to value"),
    OperatorDefinition("dateGreaterThan", "Date after", _D, ValueShape.SINGLE,
                       _dates(lambda a, b: a > b), "Date is after the specified date"),
    OperatorDefinition("dateGreaterThanOrEqual", "Date on or after", _D, ValueShape.SINGLE,
                       _dates(lambda a, b: a >= b), "Date is on or after the specified date"),
    OperatorDefinition("dateLessThan", "Date before", _D, ValueShape.SINGLE,
                       _dates(lambda a, b: a < b), "Date is before the specified date"),
    OperatorDefinition("dateLessThanOrEqual", "Date on or before", _D, ValueShape.SINGLE,
                       _dates(lambda a, b: a <= b), "Date is on or before the specified date"),
    OperatorDefinition("dateBetween", "Date between", _D, ValueShape.ARRAY,
                       _date_between, "Date is between two dates (inclusive)"),
    OperatorDefinition("dateNotBetween", "Date not between", _D, ValueShape.ARRAY,
                       _date_not_between, "Date is not between two dates"),
    OperatorDefinition("isToday", "Is today", _D, ValueShape.NONE,
                       _relative_to_now(lambda d, now: d.date() == now.date()), "Date is today"),
    OperatorDefinition("isPastDate", "Is past date", _D, ValueShape.NONE,
                       _relative_to_now(lambda d, now: d < now), "Date is in the past"),
    OperatorDefinition("isFutureDate", "Is future date", _D, ValueShape.NONE,
                       _relative_to_now(lambda d, now: d > now), "Date is in the future"),
    OperatorDefinition("isWeekday", "Is weekday", _D, ValueShape.NONE,
                       _weekday(lambda day: 1 <= day <= 5),
                       "Date falls on a weekday (Mon-Fri)"),
    OperatorDefinition("isWeekend", "Is weekend", _D, ValueShape.NONE,
                       _weekday(lambda day: day in (0, 6)),
                       "Date falls on a weekend (Sat-Sun)"),
    OperatorDefinition("dayOfWeekEquals", "Day of week equals", _D, ValueShape.SINGLE,
                       _date_part(js_weekday),
                       "Date falls on specific day (0=Sunday, 1=Monday, etc.)"),
    OperatorDefinition("monthEquals", "Month equals", _D, ValueShape.SINGLE,
                       _date_part(lambda d: d.month),
                       "Date is in specific month (1=January, 2=February, etc.)"),
    OperatorDefinition("yearEquals", "Year equals", _D, ValueShape.SINGLE,
                       _date_part(lambda d: d.year), "Date is in specific year"),
    OperatorDefinition("ageGreaterThan", "Age greater than", _D, ValueShape.SINGLE,
                       _age(lambda age, limit: age > limit),
                       "Age calculated from date is greater than value"),
    OperatorDefinition("ageLessThan", "Age less than", _D, ValueShape.SINGLE,
                       _age(lambda age, limit: age < limit),
                       "Age calculated from date is less than value"),
    OperatorDefinition("ageBetween", "Age between", _D, ValueShape.ARRAY,
                       _age_between, "Age calculated from date is between two values"),
)

OPERATORS: Dict[str, OperatorDefinition] = {op.name: op for op in _DEFINITIONS}


def get_operator(name: str) -> Optional[OperatorDefinition]:
    return OPERATORS.get(name)


def operators_in(category: OperatorCategory) -> List[OperatorDefinition]:
    return [op for op in _DEFINITIONS if op.category is category]
