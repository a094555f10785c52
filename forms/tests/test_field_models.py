"""
forms/tests/test_field_models.py
"""

from __future__ import annotations

import unittest

from forms.models.field_models import FieldDefinition, FieldType, encode_value


class TestFieldModels(unittest.TestCase):
    def test_field_type_parse(self) -> None:
        self.assertIs(FieldType.parse(None), FieldType.TEXT)
        self.assertIs(FieldType.parse(""), FieldType.TEXT)
        self.assertIs(FieldType.parse(" Checkbox "), FieldType.CHECKBOX)
        with self.assertRaises(ValueError):
            FieldType.parse("signature")

    def test_encode_value(self) -> None:
        self.assertEqual(encode_value("checkbox", "TRUE"), "X")
        self.assertEqual(encode_value("radio", "true"), "X")
        self.assertEqual(encode_value("checkbox", "false"), "")
        self.assertEqual(encode_value("checkbox", "yes"), "")
        self.assertEqual(encode_value("checkbox", " true "), "")
        self.assertEqual(encode_value("text", "  Jean Dupont "), "  Jean Dupont ")
        self.assertEqual(encode_value(None, None), "")

    def test_definition_from_dict_defaults(self) -> None:
        d = FieldDefinition.from_dict({"fieldName": "city", "assignedTo": "alice"})
        self.assertIs(d.field_type, FieldType.TEXT)
        self.assertEqual(d.page, 0)
        self.assertEqual(d.current_value, "")
        self.assertEqual(FieldDefinition.from_dict(d.to_dict()), d)

    def test_rect(self) -> None:
        d = FieldDefinition("a", "b", x=10, y=20, width=30, height=5)
        self.assertEqual(d.rect, (10, 20, 40, 25))


if __name__ == "__main__":
    unittest.main()
