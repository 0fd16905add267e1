"""Variant/size tree merging for cart items.

A cart item holds an ordered list of variants, each with an ordered list of
(size, quantity) lines. These functions never mutate their inputs: they take
the item's current tree plus a batch of incoming changes and return a new
tree.

Two merge flavours exist on purpose:

- ``merge_additive`` backs "add to cart": quantities for an existing
  (variant, size) pair accumulate.
- ``merge_overwrite`` backs "edit cart line": a positive quantity replaces
  the stored one, a zero or negative quantity deletes the size, and an
  explicit empty size list deletes the whole variant.

Catalog validation (unknown variant, stockout, unavailable size) is the
caller's job; the merge functions only assemble already-validated data.
"""

import json
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SizeQuantity:
    """A (size, quantity) line. Stored lines always carry quantity > 0."""

    size_id: str
    quantity: int

    def to_dict(self) -> dict:
        return {"size_id": self.size_id, "quantity": self.quantity}


@dataclass(frozen=True)
class VariantQuantity:
    """A color variant of the item's product with its size lines."""

    variant_id: str
    sizes: tuple[SizeQuantity, ...] = field(default_factory=tuple)

    @property
    def quantity(self) -> int:
        return sum(sq.quantity for sq in self.sizes)

    def size(self, size_id: str) -> SizeQuantity | None:
        return next((sq for sq in self.sizes if sq.size_id == size_id), None)

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "size_quantities": [sq.to_dict() for sq in self.sizes],
        }


@dataclass(frozen=True)
class VariantChange:
    """One incoming request entry for a variant.

    Unlike stored lines, quantities here may be zero or negative: on the
    update path that signals "remove this size".
    """

    variant_id: str
    sizes: tuple[SizeQuantity, ...] = field(default_factory=tuple)

    @property
    def positive_sizes(self) -> tuple[SizeQuantity, ...]:
        return tuple(sq for sq in self.sizes if sq.quantity > 0)

    @property
    def clears_variant(self) -> bool:
        return len(self.sizes) == 0


# ---------------------------------------------------------------------------
# (De)serialisation
# ---------------------------------------------------------------------------
def variants_from_json(raw: str | None) -> list[VariantQuantity]:
    """Parse the JSON stored on a cart item, dropping empty or non-positive lines."""
    if not raw:
        return []
    data = json.loads(raw) if isinstance(raw, str) else raw
    variants = []
    for entry in data:
        sizes = tuple(
            SizeQuantity(size_id=str(sq["size_id"]), quantity=int(sq["quantity"]))
            for sq in entry.get("size_quantities", [])
            if int(sq["quantity"]) > 0
        )
        if sizes:
            variants.append(VariantQuantity(variant_id=str(entry["variant_id"]), sizes=sizes))
    return variants


def variants_to_json(variants: list[VariantQuantity]) -> str:
    return json.dumps([vq.to_dict() for vq in variants])


def parse_changes(payload) -> list[VariantChange]:
    """Build VariantChange entries from a request payload (list of dicts or JSON text)."""
    if payload is None:
        return []
    data = json.loads(payload) if isinstance(payload, str) else payload
    changes = []
    for entry in data:
        sizes = tuple(
            SizeQuantity(size_id=str(sq["size_id"]), quantity=int(sq.get("quantity", 0)))
            for sq in (entry.get("size_quantities") or [])
        )
        changes.append(VariantChange(variant_id=str(entry["variant_id"]), sizes=sizes))
    return changes


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------
def _collapse(sizes) -> dict[str, int]:
    """Sum duplicate size ids while keeping first-seen order."""
    collapsed: dict[str, int] = {}
    for sq in sizes:
        collapsed[sq.size_id] = collapsed.get(sq.size_id, 0) + sq.quantity
    return collapsed


def _build(variant_id: str, size_map: dict[str, int]) -> VariantQuantity | None:
    sizes = tuple(SizeQuantity(size_id=s, quantity=q) for s, q in size_map.items() if q > 0)
    if not sizes:
        return None
    return VariantQuantity(variant_id=variant_id, sizes=sizes)


def prune(variants: list[VariantQuantity]) -> list[VariantQuantity]:
    """Drop non-positive size lines and variants left without sizes."""
    pruned = []
    for vq in variants:
        rebuilt = _build(vq.variant_id, {sq.size_id: sq.quantity for sq in vq.sizes})
        if rebuilt is not None:
            pruned.append(rebuilt)
    return pruned


def merge_additive(existing: list[VariantQuantity], incoming: list[VariantChange]) -> list[VariantQuantity]:
    """Accumulate incoming quantities into the tree ("add to cart").

    Only positive quantities contribute; an entry without any is a no-op.
    """
    result = list(existing)

    for change in incoming:
        additions = _collapse(change.positive_sizes)
        if not additions:
            continue

        index = next((i for i, vq in enumerate(result) if vq.variant_id == change.variant_id), None)
        if index is None:
            result.append(_build(change.variant_id, additions))
            continue

        size_map = {sq.size_id: sq.quantity for sq in result[index].sizes}
        for size_id, quantity in additions.items():
            size_map[size_id] = size_map.get(size_id, 0) + quantity
        result[index] = _build(change.variant_id, size_map)

    return prune(result)


def merge_overwrite(existing: list[VariantQuantity], incoming: list[VariantChange]) -> list[VariantQuantity]:
    """Apply absolute quantities to the tree ("edit cart line").

    An empty result means the item has no variants left and should be
    removed by the caller.
    """
    result = list(existing)

    for change in incoming:
        index = next((i for i, vq in enumerate(result) if vq.variant_id == change.variant_id), None)

        if index is None:
            additions = {}
            for sq in change.positive_sizes:
                additions[sq.size_id] = sq.quantity
            if additions:
                result.append(_build(change.variant_id, additions))
            continue

        if change.clears_variant:
            del result[index]
            continue

        size_map = {sq.size_id: sq.quantity for sq in result[index].sizes}
        for sq in change.sizes:
            if sq.quantity > 0:
                size_map[sq.size_id] = sq.quantity
            else:
                size_map.pop(sq.size_id, None)

        merged = _build(change.variant_id, size_map)
        if merged is None:
            del result[index]
        else:
            result[index] = merged

    return prune(result)


def new_variant_ids(existing: list[VariantQuantity], incoming: list[VariantChange]) -> list[str]:
    """Variant ids an overwrite merge would introduce (these need catalog validation)."""
    known = {vq.variant_id for vq in existing}
    introduced = []
    for change in incoming:
        if change.variant_id not in known and change.positive_sizes and change.variant_id not in introduced:
            introduced.append(change.variant_id)
    return introduced
