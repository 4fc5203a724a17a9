from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from storequery.errors import StoreQueryError


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """A single validation finding, either fatal or advisory."""

    message: str
    fatal: bool


class ValidationResults:
    """An ordered set of ValidationResults.

    Adding a result that is already present (same message and flag) is a no-op.
    """

    __slots__ = ("_results",)

    def __init__(self, results: Iterable[ValidationResult] = ()) -> None:
        """Create a result set, optionally seeded from an iterable."""
        self._results: dict[ValidationResult, None] = {}
        for result in results:
            self.add(result)

    def add(self, result: ValidationResult) -> None:
        """Add a result unless an identical one is already present."""
        self._results.setdefault(result, None)

    def fatal(self, message: str) -> None:
        """Shorthand for adding a fatal result."""
        self.add(ValidationResult(message, True))

    def advise(self, message: str) -> None:
        """Shorthand for adding an advisory result."""
        self.add(ValidationResult(message, False))

    def extend(self, other: Iterable[ValidationResult]) -> None:
        """Append every result of another collection."""
        for result in other:
            self.add(result)

    def is_fatal(self) -> bool:
        """Return True if any member is fatal."""
        return any(result.fatal for result in self._results)

    @property
    def messages(self) -> list[str]:
        """Messages of every result, in insertion order."""
        return [result.message for result in self._results]

    def __iter__(self) -> Iterator[ValidationResult]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, item: object) -> bool:
        return item in self._results

    def __bool__(self) -> bool:
        return bool(self._results)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationResults):
            return NotImplemented
        return list(self._results) == list(other._results)

    def __repr__(self) -> str:
        return f"ValidationResults({list(self._results)!r})"


class ValidationError(StoreQueryError):
    """Raised when serialization or execution is refused due to fatal validation results.

    Retains every collected result, not only the fatal ones.
    """

    def __init__(self, results: ValidationResults) -> None:
        """Instantiate a ValidationError from a set of results."""
        self.results: ValidationResults = results
        super().__init__(self._render())

    def _render(self) -> str:
        if not self.results:
            return ""
        lines = ["One or more validations failed:"]
        for result in self.results:
            prefix = "fatal: " if result.fatal else ""
            lines.append(f"{prefix}{result.message}")
        return "\n".join(lines)
