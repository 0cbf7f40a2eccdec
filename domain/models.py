from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Self


class SearchKind(Enum):
    ingredients = "ingredients"
    allergens = "allergens"


class IngredientQuery:
    """Ordered, immutable sequence of ingredient terms.

    The first term is the primary one. Terms keep the casing the user typed,
    comparisons go through `lowered`.
    """

    __slots__ = ("_terms",)

    def __init__(self, terms: Iterable[str] = ()) -> None:
        self._terms = tuple(terms)

    @property
    def terms(self) -> tuple[str, ...]:
        return self._terms

    @property
    def lowered(self) -> tuple[str, ...]:
        return tuple(t.lower() for t in self._terms)

    @property
    def primary(self) -> str | None:
        return self._terms[0] if self._terms else None

    @property
    def canonical(self) -> str:
        return ", ".join(self.lowered)

    def __len__(self) -> int:
        return len(self._terms)

    def __iter__(self):
        return iter(self._terms)

    def __bool__(self) -> bool:
        return bool(self._terms)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IngredientQuery):
            return NotImplemented
        return self.lowered == other.lowered

    def __hash__(self) -> int:
        return hash(self.lowered)

    def __repr__(self) -> str:
        return f"<IngredientQuery({self.canonical!r})>"


class RecipeCandidate:
    def __init__(
        self,
        *,
        id: str,
        title: str,
        ingredients: Iterable[str] = (),
        average_rating: float = 0.0,
        created_at: datetime | None = None,
        total_time: str | None = None,
        similarity_score: float | None = None,
        is_suggested: bool = False,
    ) -> None:
        self.id = id
        self.title = title
        self.ingredients = tuple(ingredients)
        self.average_rating = average_rating
        self.created_at = created_at
        self.total_time = total_time
        self.similarity_score = similarity_score
        self.is_suggested = is_suggested

    @property
    def title_key(self) -> str:
        return self.title.strip().lower()

    def replace(self, **changes: Any) -> Self:
        """Copy with some fields changed. Candidates are never edited in place."""
        fields = self.to_dict()
        fields["created_at"] = self.created_at
        fields.update(changes)
        return type(self)(**fields)

    def __repr__(self) -> str:
        return (
            f"<RecipeCandidate(id={self.id}, title={self.title}, "
            f"rating={self.average_rating}, score={self.similarity_score}, "
            f"suggested={self.is_suggested})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "ingredients": list(self.ingredients),
            "average_rating": self.average_rating,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "total_time": self.total_time,
            "similarity_score": self.similarity_score,
            "is_suggested": self.is_suggested,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            title=data["title"],
            ingredients=data.get("ingredients") or (),
            average_rating=float(data.get("average_rating") or 0.0),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
            total_time=data.get("total_time"),
            similarity_score=data.get("similarity_score"),
            is_suggested=bool(data.get("is_suggested", False)),
        )


class ResultSet:
    """Ranked output of one search. Exact items always precede suggested ones."""

    def __init__(
        self,
        *,
        query: IngredientQuery,
        items: Iterable[RecipeCandidate] = (),
    ) -> None:
        self.query = query
        self.items = tuple(items)

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def exact(self) -> tuple[RecipeCandidate, ...]:
        return self.items[: self.partition]

    @property
    def suggested(self) -> tuple[RecipeCandidate, ...]:
        return self.items[self.partition :]

    @property
    def partition(self) -> int:
        """Index of the first suggested item, `count` when there is none."""
        for i, item in enumerate(self.items):
            if item.is_suggested:
                return i
        return self.count

    def __repr__(self) -> str:
        return f"<ResultSet(query={self.query.canonical!r}, count={self.count})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": list(self.query.terms),
            "count": self.count,
            "items": [i.to_dict() for i in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            query=IngredientQuery(data["query"]),
            items=[RecipeCandidate.from_dict(i) for i in data["items"]],
        )


class CacheEntry:
    def __init__(
        self,
        *,
        result_set: ResultSet,
        raw_query: str,
    ) -> None:
        self.result_set = result_set
        self.raw_query = raw_query

    @property
    def key(self) -> str:
        return self.result_set.query.canonical

    @property
    def terms(self) -> tuple[str, ...]:
        return self.result_set.query.terms

    def __repr__(self) -> str:
        return f"<CacheEntry(key={self.key!r}, count={self.result_set.count})>"
