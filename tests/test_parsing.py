import unittest

from civling_sim.decision.parsing import EMPTY, MALFORMED, extract_text, parse_action_envelope


class TestParseActionEnvelope(unittest.TestCase):
    def test_strict_json(self):
        result = parse_action_envelope('{"action": "eat", "reason": "hungry"}')
        self.assertTrue(result.ok)
        self.assertEqual((result.action, result.reason), ("eat", "hungry"))

    def test_json_wrapped_in_prose(self):
        result = parse_action_envelope('Sure! {"action": "rest", "reason": "tired"} Hope that helps.')
        self.assertTrue(result.ok)
        self.assertEqual(result.action, "rest")

    def test_missing_reason_gets_default(self):
        result = parse_action_envelope('{"action": "explore"}')
        self.assertEqual(result.reason, "no_reason_given")

    def test_truncated_reason_is_recovered(self):
        result = parse_action_envelope('{"action":"gather_food","reason":"Ari needs food')
        self.assertTrue(result.ok)
        self.assertEqual(result.action, "gather_food")
        self.assertEqual(result.reason, "Ari needs food")

    def test_truncated_before_reason_text(self):
        result = parse_action_envelope('{"action": "explore", "reason": "')
        self.assertEqual((result.action, result.reason), ("explore", "partial_response"))

    def test_content_blocks_are_joined(self):
        content = [
            {"type": "text", "text": '{"action": "gather_wood", '},
            {"type": "text", "text": '"reason": "low stock"}'},
        ]
        result = parse_action_envelope(content)
        self.assertEqual((result.action, result.reason), ("gather_wood", "low stock"))

    def test_empty_content(self):
        self.assertEqual(parse_action_envelope("").status, EMPTY)
        self.assertEqual(parse_action_envelope("   ").status, EMPTY)
        self.assertEqual(parse_action_envelope(None).status, EMPTY)

    def test_prose_without_action_is_malformed(self):
        result = parse_action_envelope("I think they should probably rest for a while.")
        self.assertFalse(result.ok)
        self.assertEqual(result.status, MALFORMED)

    def test_object_without_action_is_malformed(self):
        self.assertEqual(parse_action_envelope('{"reason": "no idea"}').status, MALFORMED)


class TestExtractText(unittest.TestCase):
    def test_mixed_blocks(self):
        self.assertEqual(extract_text(["a", {"text": "b"}, {"type": "image"}]), "ab")

    def test_unsupported_type(self):
        self.assertEqual(extract_text(42), "")


if __name__ == "__main__":
    unittest.main()
