import re
from dataclasses import dataclass, field

from kubectl_topology_skew.errors import InvalidInputError

# ----------------------------
# Label selector parsing
# ----------------------------

_NAME_RE = re.compile(r"^([A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?)?$")
_PREFIX_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")

_SET_RE = re.compile(r"^(?P<key>[^\s!=(),]+)\s+(?P<op>in|notin)\s*\((?P<values>[^()]*)\)$")
_EQUALITY_RE = re.compile(r"^(?P<key>[^\s!=(),]+)\s*(?P<op>==|!=|=)\s*(?P<value>[^\s!=(),]*)$")
_EXISTS_RE = re.compile(r"^(?P<neg>!?)\s*(?P<key>[^\s!=(),]+)$")

EQUALS = "="
NOT_EQUALS = "!="
IN = "in"
NOT_IN = "notin"
EXISTS = "exists"
DOES_NOT_EXIST = "!"


def _validate_key(key: str) -> str:
    prefix, _, name = key.rpartition("/")
    if "/" in key and (not prefix or len(prefix) > 253 or not _PREFIX_RE.match(prefix)):
        raise InvalidInputError(f"Invalid label key prefix in selector: {key!r}")
    if not name or len(name) > 63 or not _NAME_RE.match(name):
        raise InvalidInputError(f"Invalid label key in selector: {key!r}")
    return key


def _validate_value(value: str) -> str:
    if len(value) > 63 or not _NAME_RE.match(value):
        raise InvalidInputError(f"Invalid label value in selector: {value!r}")
    return value


@dataclass(frozen=True)
class Requirement:
    key: str
    operator: str
    values: tuple[str, ...] = ()

    def matches(self, labels: dict[str, str]) -> bool:
        present = self.key in labels
        value = labels.get(self.key)
        if self.operator == EXISTS:
            return present
        if self.operator == DOES_NOT_EXIST:
            return not present
        if self.operator == EQUALS:
            return present and value == self.values[0]
        if self.operator == NOT_EQUALS:
            return not present or value != self.values[0]
        if self.operator == IN:
            return present and value in self.values
        if self.operator == NOT_IN:
            return not present or value not in self.values
        raise ValueError(f"Unsupported selector operator: {self.operator}")

    def __str__(self) -> str:
        if self.operator == EXISTS:
            return self.key
        if self.operator == DOES_NOT_EXIST:
            return f"!{self.key}"
        if self.operator in (EQUALS, NOT_EQUALS):
            return f"{self.key}{self.operator}{self.values[0]}"
        return f"{self.key} {self.operator} ({','.join(self.values)})"


@dataclass(frozen=True)
class Selector:
    requirements: tuple[Requirement, ...] = field(default_factory=tuple)

    def matches(self, labels: dict[str, str] | None) -> bool:
        labels = labels or {}
        return all(r.matches(labels) for r in self.requirements)

    def __bool__(self) -> bool:
        return bool(self.requirements)

    def __str__(self) -> str:
        return ",".join(str(r) for r in self.requirements)


def _split_requirements(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current = ""
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise InvalidInputError(f"Unbalanced parentheses in selector: {text!r}")
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        current += ch
    if depth != 0:
        raise InvalidInputError(f"Unbalanced parentheses in selector: {text!r}")
    parts.append(current)
    return parts


def _parse_requirement(raw: str) -> Requirement:
    text = raw.strip()
    if not text:
        raise InvalidInputError("Empty requirement in selector")

    m = _SET_RE.match(text)
    if m:
        values = tuple(v.strip() for v in m.group("values").split(","))
        if not any(values):
            raise InvalidInputError(f"Set-based requirement needs values: {text!r}")
        values = tuple(sorted({_validate_value(v) for v in values}))
        return Requirement(_validate_key(m.group("key")), m.group("op"), values)

    m = _EQUALITY_RE.match(text)
    if m:
        op = EQUALS if m.group("op") in ("=", "==") else NOT_EQUALS
        return Requirement(
            _validate_key(m.group("key")), op, (_validate_value(m.group("value")),)
        )

    m = _EXISTS_RE.match(text)
    if m:
        op = DOES_NOT_EXIST if m.group("neg") else EXISTS
        return Requirement(_validate_key(m.group("key")), op)

    raise InvalidInputError(f"Malformed selector requirement: {text!r}")


def parse_selector(text: str | None) -> Selector:
    """
    Parse a kubectl-style label selector.

    Supports `k=v`, `k==v`, `k!=v`, `k in (a,b)`, `k notin (a,b)`, `k`
    and `!k`. An empty or missing selector matches everything.
    """
    if text is None or not text.strip():
        return Selector()
    return Selector(tuple(_parse_requirement(part) for part in _split_requirements(text)))
