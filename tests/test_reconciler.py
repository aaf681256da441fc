"""Tests for create/update classification."""

from __future__ import annotations

from issue_sync.models import PendingUpdate
from issue_sync.reconciler import reconcile

from conftest import make_item


class TestReconcile:
    """Tests for reconcile()."""

    def test_known_key_updates_unknown_key_creates(self) -> None:
        items = [make_item(101), make_item(202)]

        plan = reconcile(items, {101: "pageA"})

        assert plan.to_update == [PendingUpdate(item=items[0], sink_page_id="pageA")]
        assert plan.to_create == [items[1]]

    def test_mapped_items_never_created(self) -> None:
        items = [make_item(n) for n in range(1, 21)]
        identity_map = {n: f"page-{n}" for n in range(1, 21, 2)}

        plan = reconcile(items, identity_map)

        created_keys = {i.identity_key for i in plan.to_create}
        assert created_keys.isdisjoint(identity_map)
        assert {p.item.identity_key for p in plan.to_update} == set(identity_map)

    def test_partition_is_complete_and_disjoint(self) -> None:
        items = [make_item(n) for n in range(50)]
        identity_map = {n: f"page-{n}" for n in range(0, 50, 3)}

        plan = reconcile(items, identity_map)

        assert len(plan.to_create) + len(plan.to_update) == len(items)
        created = {i.identity_key for i in plan.to_create}
        updated = {p.item.identity_key for p in plan.to_update}
        assert created.isdisjoint(updated)

    def test_input_order_preserved(self) -> None:
        items = [make_item(n) for n in (5, 3, 9, 1, 7)]

        plan = reconcile(items, {3: "p3", 1: "p1"})

        assert [i.number for i in plan.to_create] == [5, 9, 7]
        assert [p.item.number for p in plan.to_update] == [3, 1]

    def test_url_keys(self) -> None:
        url = "https://github.com/octo/beta/issues/1"
        items = [make_item(1, key=url), make_item(1, key="https://github.com/octo/alpha/issues/1")]

        plan = reconcile(items, {url: "page-beta"})

        assert plan.to_update[0].sink_page_id == "page-beta"
        assert plan.to_create == [items[1]]

    def test_empty_inputs(self) -> None:
        plan = reconcile([], {1: "p1"})

        assert plan.to_create == []
        assert plan.to_update == []

    def test_identity_map_not_mutated(self) -> None:
        identity_map = {1: "p1"}

        reconcile([make_item(1), make_item(2)], identity_map)

        assert identity_map == {1: "p1"}
