from lxml import etree
from typing import List, Optional
import os
import re
import tempfile

from .document import XliffDocument
from .errors import DocumentNotFoundError, DocumentParseError, DocumentPermissionError
from .logger import get_logger
from .xliff_obj import DEFAULT_LANG, Note, TranslationUnit, Variant

logger = get_logger(__name__)

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
SIL_NS = "http://sil.org/software/XLiff"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"


def _sil(name: str) -> str:
    return f"{{{SIL_NS}}}{name}"


def _x(name: str) -> str:
    return f"{{{XLIFF_NS}}}{name}"


class XliffParser:
    def __init__(self, file_path: str):
        self.file_path = file_path
        self.ns = {'xliff': XLIFF_NS}  # Default to 1.2
        self.tree = None
        self.root = None

    def load(self):
        """Parses the XLIFF file."""
        if not os.path.exists(self.file_path):
            raise DocumentNotFoundError(self.file_path)

        parser = etree.XMLParser(remove_blank_text=False)
        try:
            self.tree = etree.parse(self.file_path, parser)
        except etree.XMLSyntaxError as e:
            # Also covers empty files
            raise DocumentParseError(self.file_path, str(e)) from e
        except PermissionError as e:
            raise DocumentPermissionError(self.file_path, str(e)) from e
        self.root = self.tree.getroot()

        if self.root.nsmap:
            # Update default namespace if one exists without prefix
            if None in self.root.nsmap:
                self.ns['xliff'] = self.root.nsmap[None]

        if not self._file_node_list():
            raise DocumentParseError(self.file_path, "no <file> element")

    def _file_node_list(self):
        return self.root.xpath('//*[local-name()="file"]')

    def _file_node(self):
        files = self._file_node_list()
        return files[0] if files else None

    def get_languages(self) -> tuple[str, str]:
        """
        Extracts source and target languages from the first <file> element.
        Returns: (source_lang, target_lang) e.g., ("en", "es-ES")
        """
        if self.root is None:
            return ("", "")

        file_node = self._file_node()
        if file_node is None:
            return ("", "")

        return file_node.get("source-language", ""), file_node.get("target-language", "")

    def get_product_version(self) -> Optional[str]:
        if self.root is None:
            return None
        file_node = self._file_node()
        return file_node.get("product-version") if file_node is not None else None

    def get_translation_units(self) -> List[TranslationUnit]:
        """Extracts translation units from the parsed tree."""
        source_lang, target_lang = self.get_languages()
        source_lang = source_lang or DEFAULT_LANG
        units = []

        trans_units = self.root.xpath('//*[local-name()="trans-unit"]')

        for tu in trans_units:
            tu_id = tu.get('id')
            if not tu_id:
                logger.warning(f"Skipping trans-unit without id in {self.file_path}")
                continue

            unit = TranslationUnit(
                id=tu_id,
                source_lang=source_lang,
                dynamic=tu.get(_sil("dynamic"), "false").lower() == "true",
                group=self._group_of(tu),
                priority=tu.get(_sil("priority")),
                category=tu.get(_sil("category")),
            )
            approved = tu.get("approved", "no").lower() == "yes"

            source_nodes = tu.xpath('*[local-name()="source"]')
            if source_nodes:
                unit.source = self._node_to_string(source_nodes[0])

            for target_node in tu.xpath('*[local-name()="target"]'):
                lang = target_node.get(XML_LANG) or target_lang
                if not lang or lang == source_lang:
                    continue
                unit.add_or_replace_variant(Variant(
                    lang=lang,
                    value=self._node_to_string(target_node),
                    approved=approved,
                ))

            for note_node in tu.xpath('*[local-name()="note"]'):
                unit.notes.append(Note(
                    text=self._node_to_string(note_node),
                    lang=note_node.get(XML_LANG) or DEFAULT_LANG,
                ))

            units.append(unit)

        return units

    def to_document(self) -> XliffDocument:
        """Builds a clean (not dirty) document from the parsed tree."""
        file_node = self._file_node()
        source_lang, target_lang = self.get_languages()
        doc = XliffDocument(
            source_lang=source_lang or DEFAULT_LANG,
            target_lang=target_lang or None,
            product_version=file_node.get("product-version", "0.0.0"),
            original=file_node.get("original"),
            datatype=file_node.get("datatype", "plaintext"),
            hard_linebreak_replacement=file_node.get(_sil("hard-linebreak-replacement")),
            ampersand_replacement=file_node.get(_sil("amp-replacement")),
        )
        doc.add_units(self.get_translation_units())
        doc.is_dirty = False
        return doc

    @classmethod
    def read(cls, file_path: str) -> XliffDocument:
        parser = cls(file_path)
        parser.load()
        return parser.to_document()

    @classmethod
    def read_product_version(cls, file_path: str) -> Optional[str]:
        parser = cls(file_path)
        parser.load()
        return parser.get_product_version()

    @staticmethod
    def _group_of(tu) -> Optional[str]:
        parent = tu.getparent()
        while parent is not None:
            if isinstance(parent.tag, str) and etree.QName(parent).localname == "group":
                return parent.get("id")
            parent = parent.getparent()
        return None

    def _node_to_string(self, node) -> str:
        """Converts an lxml node's *children* to a string (inner XML) without namespaces."""
        if node is None:
            return ""

        parts = []
        if node.text:
            parts.append(node.text)
        for child in node:
            # Convert child to string including tail text
            child_str = etree.tostring(child, encoding='unicode', with_tail=True)
            child_str = re.sub(r'\s+xmlns(:\w+)?="[^"]*"', '', child_str)
            parts.append(child_str)
        return "".join(parts)

    # --- writing ---

    @staticmethod
    def _set_content(node, value: str):
        """Stores value as text; values holding inline markup are written as markup."""
        value = value or ""
        if "<" in value:
            try:
                dummy_root = etree.fromstring(f"<dummy>{value}</dummy>")
            except etree.XMLSyntaxError:
                dummy_root = None
            if dummy_root is not None and len(dummy_root):
                node.text = dummy_root.text
                for child in list(dummy_root):
                    node.append(child)
                return
        node.text = value

    @classmethod
    def build_tree(cls, document: XliffDocument):
        nsmap = {None: XLIFF_NS, "sil": SIL_NS}
        root = etree.Element(_x("xliff"), nsmap=nsmap)
        root.set("version", "1.2")

        file_node = etree.SubElement(root, _x("file"))
        file_node.set("original", document.original or "")
        file_node.set("datatype", document.datatype or "plaintext")
        file_node.set("source-language", document.source_lang)
        if document.target_lang and document.target_lang != document.source_lang:
            file_node.set("target-language", document.target_lang)
        file_node.set("product-version", document.product_version or "0.0.0")
        if document.hard_linebreak_replacement is not None:
            file_node.set(_sil("hard-linebreak-replacement"), document.hard_linebreak_replacement)
        if document.ampersand_replacement is not None:
            file_node.set(_sil("amp-replacement"), document.ampersand_replacement)

        body = etree.SubElement(file_node, _x("body"))
        groups = {}
        for unit in document.sorted_units():
            parent = body
            if unit.group is not None:
                parent = groups.get(unit.group)
                if parent is None:
                    parent = etree.SubElement(body, _x("group"))
                    parent.set("id", unit.group)
                    groups[unit.group] = parent
            cls._append_unit(parent, unit)
        return etree.ElementTree(root)

    @classmethod
    def _append_unit(cls, parent, unit: TranslationUnit):
        tu = etree.SubElement(parent, _x("trans-unit"))
        tu.set("id", unit.id)
        if unit.dynamic:
            tu.set(_sil("dynamic"), "true")
        if unit.priority:
            tu.set(_sil("priority"), unit.priority)
        if unit.category:
            tu.set(_sil("category"), unit.category)
        targets = unit.target_variants()
        if any(v.approved for v in targets):
            tu.set("approved", "yes")

        source = etree.SubElement(tu, _x("source"))
        source.set(XML_LANG, unit.source_lang)
        cls._set_content(source, unit.source)

        for variant in targets:
            target = etree.SubElement(tu, _x("target"))
            target.set(XML_LANG, variant.lang)
            target.set("state", "final" if variant.approved else "translated")
            cls._set_content(target, variant.value)

        for note in unit.notes:
            note_node = etree.SubElement(tu, _x("note"))
            note_node.set(XML_LANG, note.lang)
            note_node.text = note.text

    @classmethod
    def write(cls, document: XliffDocument, output_path: str):
        """Atomically writes the document (temp file in the same folder, then rename)."""
        tree = cls.build_tree(document)
        dir_name = os.path.dirname(os.path.abspath(output_path))
        os.makedirs(dir_name, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(dir=dir_name, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as tf:
                tree.write(tf, encoding="utf-8", xml_declaration=True, pretty_print=True)
            os.replace(temp_name, output_path)
        except OSError:
            if os.path.exists(temp_name):
                os.remove(temp_name)
            raise
        logger.debug(f"Wrote {len(document)} units to {output_path}")
