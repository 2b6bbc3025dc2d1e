from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from gitpod_bot.settings import ISSUES_COMMENT, PULLS_COMMENT


@dataclass(frozen=True)
class FeatureConfig:
    perform: bool = False
    comment: str = PULLS_COMMENT

    def to_dict(self) -> Dict[str, Any]:
        return {"perform": self.perform, "comment": self.comment}


@dataclass(frozen=True)
class IssuesConfig(FeatureConfig):
    comment: str = ISSUES_COMMENT
    labels: FrozenSet[str] = field(default_factory=frozenset)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["labels"] = sorted(self.labels)
        return data


@dataclass(frozen=True)
class GitpodConfig:
    pulls: FeatureConfig = field(default_factory=FeatureConfig)
    issues: IssuesConfig = field(default_factory=IssuesConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {"pulls": self.pulls.to_dict(), "issues": self.issues.to_dict()}


def _section(raw: Optional[Mapping[str, Any]], name: str) -> Mapping[str, Any]:
    section = raw.get(name) if raw else None
    return section if isinstance(section, Mapping) else {}


def _labels(value: Any) -> FrozenSet[str]:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset([value])
    if isinstance(value, Iterable):
        return frozenset(str(label) for label in value if label is not None)
    return frozenset([str(value)])


def resolve_config(raw: Optional[Mapping[str, Any]]) -> GitpodConfig:
    """
    Build a fully-defaulted config from the parsed YAML (or None when the
    repository has no config file). Both features stay disabled unless the
    file turns them on.
    """
    pulls = _section(raw, "pulls")
    issues = _section(raw, "issues")

    return GitpodConfig(
        pulls=FeatureConfig(
            perform=bool(pulls.get("perform")),
            comment=pulls.get("comment") or PULLS_COMMENT,
        ),
        issues=IssuesConfig(
            perform=bool(issues.get("perform")),
            comment=issues.get("comment") or ISSUES_COMMENT,
            labels=_labels(issues.get("labels")),
        ),
    )
