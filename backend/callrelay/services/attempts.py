import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from callrelay.models.custom_field import WRITE_ORDER, FieldShape

logger = logging.getLogger(__name__)

T = TypeVar("T")

UPDATE_METHODS = ("PUT", "PATCH")
ACTIVITY_PATHS = (
    "/candidate/{candidate_id}/activities",
    "/candidate/{candidate_id}/activity",
    "/candidate/{candidate_id}/notes",
    "/activities",
    "/activity",
    "/notes",
)


@dataclass(frozen=True)
class UpdateAttempt:
    method: str
    path: str
    shape: FieldShape

    @property
    def label(self) -> str:
        return f"{self.method} {self.path} style={self.shape.value}"


@dataclass(frozen=True)
class ActivityAttempt:
    path: str

    @property
    def label(self) -> str:
        return f"POST {self.path}"


def candidate_paths(id_or_slug: Any) -> List[str]:
    return [f"/candidate/{id_or_slug}"]


def update_attempts(
    id_or_slug: Any,
    methods: Sequence[str] = UPDATE_METHODS,
    shapes: Sequence[FieldShape] = WRITE_ORDER,
) -> List[UpdateAttempt]:
    """Verb outermost, then path, then body shape."""
    return [
        UpdateAttempt(method, path, shape)
        for method in methods
        for path in candidate_paths(id_or_slug)
        for shape in shapes
    ]


def activity_attempts(candidate_id: Any, preferred_path: Optional[str] = None) -> List[ActivityAttempt]:
    paths: List[str] = []
    # Operator path is taken literally.
    candidates: List[str] = [preferred_path] if preferred_path else []
    candidates += [template.format(candidate_id=candidate_id) for template in ACTIVITY_PATHS]
    for path in candidates:
        if not path.startswith("/"):
            path = "/" + path
        if path not in paths:
            paths.append(path)
    return [ActivityAttempt(path) for path in paths]


async def first_success(
    attempts: Iterable[T],
    run: Callable[[T], Awaitable[Any]],
    describe: Callable[[T], str] = lambda attempt: getattr(attempt, "label", repr(attempt)),
    is_skippable: Callable[[Exception], bool] = lambda exc: True,
) -> Tuple[Optional[T], Any]:
    """Run attempts in order and stop at the first that does not raise.

    Returns ``(attempt, result)`` for the winner, or ``(None, None)`` once every
    attempt has failed. Failures rejected by ``is_skippable`` propagate.
    """
    for attempt in attempts:
        try:
            result = await run(attempt)
        except Exception as exc:
            if not is_skippable(exc):
                raise
            status_code = getattr(exc, "status_code", None)
            if status_code == 404:
                logger.warning("404 on %s; trying next", describe(attempt))
            else:
                logger.warning("%s failed: %s", describe(attempt), getattr(exc, "body", None) or exc)
            continue
        return attempt, result
    return None, None

