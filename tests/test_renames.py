from __future__ import annotations

import threading
from pathlib import Path

from posterguard.renames import ProjectRenames


def test_first_writer_wins_and_duplicates_are_conflicts(tmp_path: Path) -> None:
    proj = tmp_path / "old_name"
    proj.mkdir()
    rn = ProjectRenames()
    assert rn.propose(str(proj), "new_name", source="a.jpg")
    assert rn.propose(str(proj) + "/", "new_name", source="b.jpg")
    assert not rn.propose(str(proj), "other_name", source="c.jpg")
    assert not rn.propose(str(proj), "third_name", source="d.jpg")
    assert len(rn) == 1

    first, *dups = rn.apply()
    assert first.status == "renamed"
    assert (tmp_path / "new_name").is_dir()
    assert not proj.exists()

    assert [d.status for d in dups] == ["conflict", "conflict"]
    assert "other_name" in dups[0].detail and "c.jpg" in dups[0].detail
    assert "third_name" in dups[1].detail
    assert not (tmp_path / "other_name").exists()


def test_nested_project_dirs_are_renamed_deepest_first(tmp_path: Path) -> None:
    outer = tmp_path / "PROJ"
    inner = outer / "other"
    inner.mkdir(parents=True)
    rn = ProjectRenames()
    rn.propose(str(outer), "film")
    rn.propose(str(inner), "film_extra")

    res = rn.apply()
    assert [r.status for r in res] == ["renamed", "renamed"]
    assert Path(res[0].project_dir) == inner
    assert (tmp_path / "film" / "film_extra").is_dir()


def test_apply_renames_sequentially(tmp_path: Path) -> None:
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    (tmp_path / "taken").mkdir()

    rn = ProjectRenames()
    rn.propose(str(a), "film_2018")
    rn.propose(str(b), "taken")
    rn.propose(str(tmp_path / "missing"), "x")
    rn.propose(str(tmp_path / "taken"), "taken")

    res = {Path(r.project_dir).name: r for r in rn.apply()}
    assert res["a"].status == "renamed"
    assert (tmp_path / "film_2018").is_dir()
    assert res["b"].status == "error" and "exists" in res["b"].detail
    assert res["missing"].status == "error"
    assert res["taken"].status == "unchanged"
    assert not res["b"].ok and res["a"].ok


def test_dry_run_does_not_touch_disk(tmp_path: Path) -> None:
    a = tmp_path / "a"
    a.mkdir()
    rn = ProjectRenames()
    rn.propose(str(a), "z")
    (out,) = rn.apply(dry_run=True)
    assert out.status == "planned"
    assert a.is_dir()
    assert not (tmp_path / "z").exists()


def test_concurrent_proposals_keep_one_winner(tmp_path: Path) -> None:
    rn = ProjectRenames()
    results: list[bool] = []
    lock = threading.Lock()

    def worker(i: int) -> None:
        ok = rn.propose(str(tmp_path / "p"), f"name_{i % 2}")
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(rn) == 1
    assert results.count(True) == 10
