"""
Tests for model repositories.
"""
import json

import pytest

from storeplan_suite.core.repository import InMemoryModelRepository, JsonModelRepository
from storeplan_suite.core.trend import CurveMode, ShiftCurve


@pytest.mark.unit
class TestInMemoryRepository:
    """Tests for the dict-backed repository."""

    def test_save_and_get(self, make_model):
        repo = InMemoryModelRepository()
        assert repo.save_model(make_model(name="A")) == "A"
        assert repo.get_model("A").name == "A"
        assert "A" in repo
        assert len(repo) == 1

    def test_replace_by_name(self, make_model):
        repo = InMemoryModelRepository([make_model(name="A", nudge=1.0)])
        repo.save_model(make_model(name="A", nudge=2.0))
        assert len(repo) == 1
        assert repo.get_model("A").nudge == 2.0

    def test_delete(self, make_model):
        repo = InMemoryModelRepository([make_model(name="A")])
        assert repo.delete_model("A") is True
        assert repo.delete_model("A") is False
        assert repo.get_model("A") is None

    def test_active_models(self, make_model):
        repo = InMemoryModelRepository([
            make_model(name="ok"),
            make_model(name="closed", is_active=False),
            make_model(name="broken", error=True),
        ])
        assert [m.name for m in repo.active_models()] == ["ok"]


@pytest.mark.integration
class TestJsonRepository:
    """Tests for the JSON file repository."""

    def test_round_trip(self, tmp_path, make_model):
        path = tmp_path / "models.json"
        curve = ShiftCurve(L=1000, k=0.2, t0=10, base=100, shock_index=6, L_post=1500)
        original = make_model(name="A", curve=curve, nudge=12.5, nudge_decay=0.8,
                              budget={"2025-01": 700})

        JsonModelRepository(str(path)).save_model(original)
        loaded = JsonModelRepository(str(path)).get_model("A")

        assert loaded.mode == CurveMode.SHIFT
        assert loaded.curve == curve
        assert loaded.shock_index == 6
        assert loaded.nudge == 12.5
        assert loaded.nudge_decay == 0.8
        assert loaded.series.dates == original.series.dates
        assert loaded.budget.get("2025-01") == 700.0

    def test_file_layout(self, tmp_path, make_model):
        path = tmp_path / "nested" / "models.json"
        repo = JsonModelRepository(str(path))
        repo.save_models([make_model(name="A"), make_model(name="B")])
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert set(data) == {"A", "B"}
        assert data["A"]["fit"]["mode"] == "standard"

    def test_delete_persists(self, tmp_path, make_model):
        path = tmp_path / "models.json"
        repo = JsonModelRepository(str(path))
        repo.save_model(make_model(name="A"))
        assert repo.delete_model("A")
        assert len(JsonModelRepository(str(path))) == 0

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "models.json"
        path.write_text("{not json", encoding="utf-8")
        repo = JsonModelRepository(str(path))
        assert repo.all_models() == []

    def test_corrupt_file_moved_aside_before_save(self, tmp_path, make_model):
        """An unparsable file is kept as .bak, not overwritten."""
        path = tmp_path / "models.json"
        path.write_text("{not json", encoding="utf-8")
        repo = JsonModelRepository(str(path))
        repo.save_model(make_model(name="C"))

        backup = tmp_path / "models.json.bak"
        assert backup.read_text(encoding="utf-8") == "{not json"
        with open(path, encoding="utf-8") as f:
            assert set(json.load(f)) == {"C"}

    def test_bad_record_does_not_drop_others(self, tmp_path, make_model):
        """One unreadable record: the rest load, and nothing is lost on the next save."""
        path = tmp_path / "models.json"
        good = make_model(name="A").to_dict()
        bad = make_model(name="B").to_dict()
        bad["seasonal"] = [None] * 12
        path.write_text(json.dumps({"A": good, "B": bad}), encoding="utf-8")

        repo = JsonModelRepository(str(path))
        assert [m.name for m in repo.all_models()] == ["A"]

        repo.save_model(make_model(name="C"))
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert set(data) == {"A", "B", "C"}
        assert data["B"]["seasonal"] == [None] * 12
        assert JsonModelRepository(str(path)).get_model("A") is not None

    def test_unreadable_record_can_be_replaced_or_deleted(self, tmp_path, make_model):
        path = tmp_path / "models.json"
        bad = make_model(name="B").to_dict()
        bad["seasonal"] = [None] * 12
        path.write_text(json.dumps({"B": bad}), encoding="utf-8")

        repo = JsonModelRepository(str(path))
        assert repo.delete_model("B") is True
        with open(path, encoding="utf-8") as f:
            assert json.load(f) == {}

        path.write_text(json.dumps({"B": bad}), encoding="utf-8")
        repo = JsonModelRepository(str(path))
        repo.save_model(make_model(name="B"))
        assert JsonModelRepository(str(path)).get_model("B").seasonal == [1.0] * 12

    def test_missing_file(self, tmp_path):
        repo = JsonModelRepository(str(tmp_path / "absent.json"))
        assert len(repo) == 0
        assert not (tmp_path / "absent.json").exists()
