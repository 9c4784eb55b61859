import unittest
import os
import shutil
import tempfile

from l10n_cache.document import XliffDocument
from l10n_cache.errors import DocumentNotFoundError, DocumentParseError
from l10n_cache.parser import XliffParser
from l10n_cache.xliff_obj import Note, TranslationUnit, Variant


class TestParserRoundTrip(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="l10n_parser_")

    def tearDown(self):
        if os.path.exists(self.test_dir):
            shutil.rmtree(self.test_dir)

    def _path(self, name):
        return os.path.join(self.test_dir, name)

    def test_write_then_read_keeps_units_and_attributes(self):
        doc = XliffDocument(target_lang="es", product_version="3.1.0", original="App.dll")
        title = TranslationUnit("Dialogs.Title", "Hello {0}", group="Dialogs",
                                priority="high", category="caption")
        title.add_or_replace_variant(Variant("es", "Hola {0}", approved=True))
        title.notes.append(Note("ID: Dialogs.Title"))
        title.notes.append(Note("Shown in the title bar", "en"))
        doc.add_or_replace(title)

        dyn = TranslationUnit("Runtime.Status", "Working...", dynamic=True)
        dyn.add_or_replace_variant(Variant("es", "Trabajando..."))
        doc.add_or_replace(dyn)

        path = self._path("App.es.xlf")
        XliffParser.write(doc, path)
        loaded = XliffParser.read(path)

        self.assertFalse(loaded.is_dirty)
        self.assertEqual(loaded.target_lang, "es")
        self.assertEqual(loaded.source_lang, "en")
        self.assertEqual(loaded.product_version, "3.1.0")
        self.assertEqual(loaded.original, "App.dll")
        self.assertEqual(loaded.hard_linebreak_replacement, "\\n")
        self.assertEqual(loaded.ampersand_replacement, "|amp|")

        unit = loaded.get("Dialogs.Title")
        self.assertEqual(unit.source, "Hello {0}")
        self.assertEqual(unit.group, "Dialogs")
        self.assertEqual(unit.priority, "high")
        self.assertEqual(unit.category, "caption")
        self.assertFalse(unit.dynamic)
        self.assertEqual(unit.variants["es"].value, "Hola {0}")
        self.assertTrue(unit.variants["es"].approved)
        self.assertEqual([n.text for n in unit.notes], ["ID: Dialogs.Title", "Shown in the title bar"])

        unit = loaded.get("Runtime.Status")
        self.assertTrue(unit.dynamic)
        self.assertIsNone(unit.group)
        self.assertFalse(unit.variants["es"].approved)
        self.assertEqual(loaded.translation_for(unit), "Trabajando...")

    def test_inline_markup_survives(self):
        doc = XliffDocument.create_empty()
        doc.add_or_replace(TranslationUnit("A.Link", 'Click <g id="1">here</g> now'))
        doc.add_or_replace(TranslationUnit("A.Math", "a < b & c"))
        path = self._path("App.en.xlf")
        XliffParser.write(doc, path)

        loaded = XliffParser.read(path)
        self.assertEqual(loaded.get("A.Link").source, 'Click <g id="1">here</g> now')
        self.assertEqual(loaded.get("A.Math").source, "a < b & c")

    def test_write_leaves_no_temp_files(self):
        doc = XliffDocument.create_empty()
        doc.add_or_replace(TranslationUnit("A", "a"))
        XliffParser.write(doc, self._path("App.en.xlf"))
        XliffParser.write(doc, self._path("App.en.xlf"))
        self.assertEqual(os.listdir(self.test_dir), ["App.en.xlf"])

    def test_target_without_lang_uses_file_target_language(self):
        path = self._path("sample.xlf")
        with open(path, "w", encoding="utf-8") as f:
            f.write("""<?xml version="1.0" encoding="utf-8"?>
<xliff xmlns="urn:oasis:names:tc:xliff:document:1.2" version="1.2">
  <file original="sample.dll" source-language="en" target-language="zh-CN" datatype="plaintext" product-version="1.0">
    <body>
      <group id="Main">
        <trans-unit id="Main.Ok" approved="yes">
          <source>OK</source>
          <target>确定</target>
        </trans-unit>
      </group>
    </body>
  </file>
</xliff>""")
        loaded = XliffParser.read(path)
        unit = loaded.get("Main.Ok")
        self.assertEqual(unit.group, "Main")
        self.assertEqual(unit.variants["zh-CN"].value, "确定")
        self.assertTrue(unit.variants["zh-CN"].approved)
        self.assertEqual(XliffParser.read_product_version(path), "1.0")

    def test_missing_file(self):
        with self.assertRaises(DocumentNotFoundError):
            XliffParser.read(self._path("nothing.xlf"))

    def test_corrupt_and_empty_files(self):
        for name, content in [("broken.xlf", "<xliff><file"), ("empty.xlf", ""), ("nofile.xlf", "<xliff/>")]:
            path = self._path(name)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            with self.assertRaises(DocumentParseError):
                XliffParser.read(path)

    def test_parse_error_is_a_value_error(self):
        path = self._path("broken.xlf")
        with open(path, "w", encoding="utf-8") as f:
            f.write("not xml at all")
        with self.assertRaises(ValueError):
            XliffParser.read(path)


if __name__ == "__main__":
    unittest.main()
