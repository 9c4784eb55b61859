import copy

from l10n_cache.document import XliffDocument
from l10n_cache.merge import XliffMerger, merge_documents
from l10n_cache.string_cache import LocalizedStringCache
from l10n_cache.xliff_obj import TranslationUnit, Variant


def make_doc(version, units):
    doc = XliffDocument.create_empty(product_version=version)
    doc.add_units(units)
    return doc


def notes_of(doc, unit_id):
    return [n.text for n in doc.get(unit_id).notes]


def test_changed_source_keeps_translation():
    new_doc = make_doc("2.0", [TranslationUnit("A.B.Title", "Hello {0}")])
    old_unit = TranslationUnit("A.B.Title", "Hi {0}")
    old_unit.add_or_replace_variant(Variant("es", "Hola {0}"))
    old_unit.add_note("Title of the main window")
    old_doc = make_doc("1.0", [old_unit])

    merger = XliffMerger()
    merged = merger.merge(new_doc, old_doc)

    assert merger.report.changed == ["A.B.Title"]
    assert merger.report.category_of("A.B.Title") == "changed"
    unit = merged.get("A.B.Title")
    assert unit.source == "Hello {0}"
    assert unit.variants["es"].value == "Hola {0}"
    assert "OLD TEXT (before 2.0): Hi {0}" in notes_of(merged, "A.B.Title")
    assert "[OLD NOTE] Title of the main window" in notes_of(merged, "A.B.Title")

    cache = LocalizedStringCache(merged)
    spanish = XliffDocument(target_lang="es")
    spanish.add_or_replace(copy.deepcopy(unit))
    cache.add_document("es", spanish)
    assert cache.resolve("es", "A.B.Title") == "Hola {0}"


def test_inputs_are_not_modified():
    new_unit = TranslationUnit("A", "New text")
    old_unit = TranslationUnit("A", "Old text")
    old_unit.add_note("comment")
    gone = TranslationUnit("B", "Gone")
    new_doc = make_doc("2.0", [new_unit])
    old_doc = make_doc("1.0", [old_unit, gone])

    merge_documents(new_doc, old_doc)

    assert new_unit.notes == []
    assert [n.text for n in old_unit.notes] == ["comment"]
    assert gone.notes == []
    assert "B" not in new_doc


def test_new_unit():
    new_doc = make_doc("2.0", [TranslationUnit("A", "a"), TranslationUnit("Z", "z")])
    old_doc = make_doc("1.0", [TranslationUnit("A", "a")])
    merger = XliffMerger()
    merged = merger.merge(new_doc, old_doc)
    assert merger.report.new == ["Z"]
    assert merger.report.category_of("A") is None
    assert notes_of(merged, "A") == []


def test_old_notes_are_marked_once():
    new_unit = TranslationUnit("A", "a")
    new_unit.add_note("ID: A")
    old_unit = TranslationUnit("A", "a")
    old_unit.add_note("ID: A")
    old_unit.add_note("OLD TEXT (before 1.0): b")
    old_unit.add_note("[OLD NOTE] older remark")
    old_unit.add_note("remark")
    merged = merge_documents(make_doc("2.0", [new_unit]), make_doc("1.0", [old_unit]))

    assert notes_of(merged, "A") == [
        "ID: A",
        "OLD TEXT (before 1.0): b",
        "[OLD NOTE] older remark",
        "[OLD NOTE] remark",
    ]


def test_wrong_dynamic_flag():
    new_doc = make_doc("2.0", [TranslationUnit("A", "a")])
    old_doc = make_doc("1.0", [TranslationUnit("A", "a", dynamic=True)])
    merger = XliffMerger()
    merged = merger.merge(new_doc, old_doc)
    assert merger.report.wrong_dynamic == ["A"]
    assert not merged.get("A").dynamic
    assert "Not dynamic: found in static scan of compiled code (version 2.0)" in notes_of(merged, "A")


def test_changed_wins_over_wrong_dynamic():
    new_doc = make_doc("2.0", [TranslationUnit("A", "new")])
    old_doc = make_doc("1.0", [TranslationUnit("A", "old", dynamic=True)])
    merger = XliffMerger()
    merged = merger.merge(new_doc, old_doc)
    assert merger.report.changed == ["A"]
    assert merger.report.wrong_dynamic == []
    notes = notes_of(merged, "A")
    assert "OLD TEXT (before 2.0): old" in notes
    assert "Not dynamic: found in static scan of compiled code (version 2.0)" in notes


def test_missing_units_are_kept_and_annotated():
    new_doc = make_doc("2.0", [TranslationUnit("A", "a")])
    old_doc = make_doc("1.0", [
        TranslationUnit("A", "a"),
        TranslationUnit("Static.Gone", "gone"),
        TranslationUnit("Dynamic.Gone", "runtime", dynamic=True),
    ])
    merger = XliffMerger()
    merged = merger.merge(new_doc, old_doc)

    assert merger.report.missing == ["Static.Gone"]
    assert merger.report.missing_dynamic == ["Dynamic.Gone"]
    assert notes_of(merged, "Static.Gone") == ["Not found in static scan of compiled code (version 2.0)"]
    # no dynamic strings were collected this time, so nothing to say
    assert notes_of(merged, "Dynamic.Gone") == []


def test_missing_dynamic_noted_when_dynamic_strings_were_collected():
    new_doc = make_doc("2.0", [TranslationUnit("Runtime.Found", "found", dynamic=True)])
    old_doc = make_doc("1.0", [TranslationUnit("Dynamic.Gone", "runtime", dynamic=True)])
    merged = merge_documents(new_doc, old_doc)
    assert notes_of(merged, "Dynamic.Gone") == ["Not found when running compiled program (version 2.0)"]


def test_every_id_once_and_categories_exclusive():
    new_doc = make_doc("2.0", [
        TranslationUnit("Same", "same"),
        TranslationUnit("Changed", "after"),
        TranslationUnit("Fresh", "fresh"),
        TranslationUnit("WasDynamic", "w"),
        TranslationUnit("Both", "after"),
    ])
    old_doc = make_doc("1.0", [
        TranslationUnit("Same", "same"),
        TranslationUnit("Changed", "before"),
        TranslationUnit("WasDynamic", "w", dynamic=True),
        TranslationUnit("Both", "before", dynamic=True),
        TranslationUnit("Obsolete", "o"),
        TranslationUnit("Runtime", "r", dynamic=True),
    ])
    merger = XliffMerger()
    merged = merger.merge(new_doc, old_doc)

    all_ids = set(new_doc.ids()) | set(old_doc.ids())
    assert sorted(merged.ids()) == sorted(all_ids)
    assert len(merged.ids()) == len(all_ids)

    report = merger.report
    tallied = report.new + report.changed + report.wrong_dynamic + report.missing + report.missing_dynamic
    assert len(tallied) == len(set(tallied))
    assert report.counts() == {"new": 1, "changed": 2, "wrong_dynamic": 1, "missing": 1, "missing_dynamic": 1}


def test_output_sorted_by_group_then_id():
    new_doc = make_doc("2.0", [
        TranslationUnit("b"),
        TranslationUnit("a", group="Dialogs"),
        TranslationUnit("c"),
    ])
    old_doc = make_doc("1.0", [TranslationUnit("a2", group="About")])
    merged = merge_documents(new_doc, old_doc)
    assert merged.ids() == ["b", "c", "a2", "a"]


def test_merge_without_baseline():
    new_doc = make_doc("2.0", [TranslationUnit("A", "a")])
    merger = XliffMerger()
    merged = merger.merge(new_doc, None)
    assert merged.ids() == ["A"]
    assert merger.report.counts() == {"new": 0, "changed": 0, "wrong_dynamic": 0, "missing": 0, "missing_dynamic": 0}


def test_verbose_merge_logs_summary(caplog):
    new_doc = make_doc("2.0", [TranslationUnit("A", "a")])
    old_doc = make_doc("1.0", [TranslationUnit("B", "b")])
    with caplog.at_level("INFO", logger="l10n_cache.merge"):
        merge_documents(new_doc, old_doc, verbose=True)
    assert "possibly obsolete" in caplog.text
    assert "    B" in caplog.text
