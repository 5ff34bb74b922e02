# test_org_tree.py
#
# Run:
#   python -m unittest -v
#
# Document tree built by org_tree.parse().

import unittest

import org_tree as m
from config_loader import DEFAULT_CONFIG, config_from_keywords


class TestOutline(unittest.TestCase):
    def test_basic_headline(self):
        doc = m.parse("* TODO Write report :work:\n")

        self.assertEqual(len(doc.children), 1)
        h = doc.children[0]
        self.assertEqual(h.level, 1)
        self.assertEqual(h.raw_value, "Write report")
        self.assertEqual(h.todo_keyword, "TODO")
        self.assertEqual(h.todo_type, "todo")
        self.assertEqual(h.tags, ["work"])

    def test_nesting_by_level(self):
        doc = m.parse("* A\n** B\n*** C\n** D\n* E\n")

        self.assertEqual([h.raw_value for h in doc.children], ["A", "E"])
        a = doc.children[0]
        self.assertEqual([h.raw_value for h in a.children], ["B", "D"])
        self.assertEqual([h.raw_value for h in a.children[0].children], ["C"])

    def test_skipped_level_attaches_to_nearest_shallower(self):
        doc = m.parse("* A\n*** Deep\n** Mid\n")

        a = doc.children[0]
        self.assertEqual([(h.raw_value, h.level) for h in a.children], [("Deep", 3), ("Mid", 2)])

    def test_headline_without_tags_has_empty_list(self):
        doc = m.parse("* Plain\n")
        self.assertEqual(doc.children[0].tags, [])
        self.assertIsNone(doc.children[0].properties_drawer)
        self.assertIsNone(doc.children[0].planning)

    def test_title_objects(self):
        doc = m.parse("* Meeting <2024-03-15 Fri> with [[id:42][Bob]]\n")
        h = doc.children[0]
        self.assertEqual([o.type for o in h.title_objects], ["timestamp", "link"])

    def test_custom_config_keywords(self):
        cfg = config_from_keywords(DEFAULT_CONFIG, ["OPEN"], ["SHIPPED"])
        doc = m.parse("* OPEN x\n* SHIPPED y\n* TODO z\n", cfg)

        self.assertEqual([h.todo_keyword for h in doc.children], ["OPEN", "SHIPPED", None])
        self.assertEqual([h.todo_type for h in doc.children], ["todo", "done", None])
        self.assertEqual(doc.todo_keywords, ["OPEN"])
        self.assertEqual(doc.done_keywords, ["SHIPPED"])

    def test_in_buffer_todo_line_sets_document_keywords(self):
        doc = m.parse("#+TODO: START | FINISH\n* START a\n")
        self.assertEqual(doc.todo_keywords, ["START"])
        self.assertEqual(doc.done_keywords, ["FINISH"])
        self.assertEqual(doc.children[0].todo_keyword, "START")
        self.assertEqual(m.parse("#+TODO: START | FINISH\n* FINISH b\n").children[0].todo_type, "done")


class TestDocumentKeywords(unittest.TestCase):
    def test_last_keyword_wins(self):
        doc = m.parse("#+TITLE: A\n#+TITLE: B\n")
        self.assertEqual(doc.keywords, {"TITLE": "B"})
        self.assertEqual(doc.title, "B")

    def test_property_lines_accumulate(self):
        doc = m.parse("#+PROPERTY: A 1\n#+PROPERTY: B 2\n")
        self.assertEqual(doc.properties, {"A": "1", "B": "2"})
        self.assertNotIn("PROPERTY", doc.keywords)

    def test_keyword_after_content_is_body_element(self):
        doc = m.parse("Intro\n#+NAME: later\n")
        self.assertEqual(doc.keywords, {"NAME": "later"})
        self.assertEqual([e.type for e in doc.body], ["paragraph", "keyword"])

    def test_keywords_after_leading_comment_belong_to_document(self):
        doc = m.parse("# -*- mode: org -*-\n#+TITLE: Notes\n#+PROPERTY: owner alice\n* H\n")
        self.assertEqual(doc.title, "Notes")
        self.assertEqual(doc.properties, {"owner": "alice"})
        self.assertEqual([e.type for e in doc.body], ["comment", "keyword", "keyword"])

    def test_keywords_under_headline_or_in_block_stay_local(self):
        doc = m.parse("#+BEGIN_QUOTE\n#+NAME: inner\n#+END_QUOTE\n* H\n#+NAME: local\n")
        self.assertEqual(doc.keywords, {})

    def test_leading_drawer_ends_preamble(self):
        doc = m.parse(":PROPERTIES:\n:ID: x\n:END:\n#+title: Foo\n")
        self.assertEqual(doc.title, "Foo")
        self.assertEqual([e.type for e in doc.body], ["drawer", "keyword"])


class TestHeadlineMetadata(unittest.TestCase):
    def test_planning_and_properties(self):
        doc = m.parse(
            "* Task\n"
            "SCHEDULED: <2024-03-15 Fri> DEADLINE: <2024-03-20 Wed>\n"
            ":PROPERTIES:\n"
            ":ID: task-1\n"
            ":END:\n"
        )
        h = doc.children[0]
        self.assertEqual(h.planning.scheduled.raw_value, "<2024-03-15 Fri>")
        self.assertEqual(h.planning.deadline.raw_value, "<2024-03-20 Wed>")
        self.assertIsNone(h.planning.closed)
        self.assertEqual(h.properties_drawer, {"ID": "task-1"})
        self.assertFalse(h.drawer_first)

    def test_drawer_before_planning_is_remembered(self):
        doc = m.parse("* H\n:PROPERTIES:\n:ID: 1\n:END:\nSCHEDULED: <2024-03-15>\n")
        h = doc.children[0]
        self.assertTrue(h.drawer_first)
        self.assertIsNotNone(h.planning.scheduled)

    def test_empty_property_drawer(self):
        doc = m.parse("* H\n:PROPERTIES:\n:END:\n")
        self.assertEqual(doc.children[0].properties_drawer, {})

    def test_clock_lines(self):
        doc = m.parse(
            "* H\n"
            "CLOCK: [2024-01-15 Mon 10:00]--[2024-01-15 Mon 11:30] =>  1:30\n"
            "CLOCK: [2024-01-16 Tue 09:00]\n"
        )
        h = doc.children[0]
        self.assertEqual(len(h.clock), 2)
        self.assertEqual(h.clock[0].duration, "1:30")
        self.assertTrue(h.clock[1].is_running)

    def test_logbook_stays_a_drawer(self):
        doc = m.parse(
            "* H\n"
            ":LOGBOOK:\n"
            "CLOCK: [2024-01-15 Mon 10:00]--[2024-01-15 Mon 11:00] =>  1:00\n"
            ":END:\n"
        )
        h = doc.children[0]
        self.assertEqual(h.clock, [])
        self.assertEqual(h.body[0].type, "drawer")
        self.assertEqual(h.body[0].name, "LOGBOOK")
        self.assertEqual(len(h.body[0].lines), 1)


class TestBodyElements(unittest.TestCase):
    def test_body_before_first_headline(self):
        doc = m.parse("Intro text\n* H\n")
        self.assertEqual(doc.body[0].type, "paragraph")
        self.assertEqual(doc.body[0].lines, ["Intro text"])
        self.assertEqual(len(doc.children), 1)

    def test_paragraph_objects(self):
        doc = m.parse("* H\nSee [[https://x.com][X]] by <2024-03-15 Fri>\n")
        para = doc.children[0].body[0]
        self.assertEqual(para.objects[0].link_type, "https")
        self.assertEqual(para.objects[1].type, "timestamp")

    def test_blank_lines_split_paragraphs(self):
        doc = m.parse("* H\nPara one\n\nPara two\n")
        body = doc.children[0].body
        self.assertEqual(len(body), 2)
        self.assertEqual(body[0].post_blank, 1)
        self.assertEqual(body[1].lines, ["Para two"])

    def test_src_block(self):
        doc = m.parse("#+BEGIN_SRC python :results output\nprint(1)\n\nprint(2)\n#+END_SRC\n")
        block = doc.body[0]
        self.assertEqual(block.type, "src-block")
        self.assertEqual(block.language, "python")
        self.assertEqual(block.parameters, {"results": "output"})
        self.assertEqual(block.value, "print(1)\n\nprint(2)\n")

    def test_unterminated_src_block_keeps_content(self):
        doc = m.parse("* H\n#+BEGIN_SRC python\ncode\n")
        block = doc.children[0].body[0]
        self.assertEqual(block.value, "code\n")

    def test_quote_block_children(self):
        doc = m.parse("#+BEGIN_QUOTE\nQuoted text\n#+END_QUOTE\nAfter\n")
        block = doc.body[0]
        self.assertEqual(block.block_type, "quote")
        self.assertFalse(block.is_verbatim)
        self.assertEqual(block.children[0].lines, ["Quoted text"])
        self.assertEqual(doc.body[1].lines, ["After"])

    def test_example_block_is_verbatim(self):
        doc = m.parse("#+begin_example\n* not a headline\n#+end_example\n")
        block = doc.body[0]
        self.assertTrue(block.is_verbatim)
        self.assertEqual(block.value, "* not a headline\n")
        self.assertFalse(block.upper_case)
        self.assertEqual(doc.children, [])

    def test_table_with_formula(self):
        doc = m.parse("| a | b |\n|---+---|\n| 1 | 2 |\n#+TBLFM: $2=$1*2\n")
        table = doc.body[0]
        self.assertEqual(table.type, "table")
        self.assertEqual(len(table.rows), 3)
        self.assertTrue(table.rows[1].is_rule)
        self.assertEqual(table.formulas, ["$2=$1*2"])
        self.assertEqual(len(doc.body), 1)

    def test_comment_lines_group(self):
        doc = m.parse("Text\n# one\n# two\n")
        self.assertEqual(doc.body[1].type, "comment")
        self.assertEqual(doc.body[1].lines, ["# one", "# two"])

    def test_malformed_input_does_not_raise(self):
        doc = m.parse("#+END_SRC\n:END:\n| broken\n* \n")
        self.assertEqual(len(doc.children), 1)
        self.assertEqual(doc.children[0].raw_value, "")


if __name__ == "__main__":
    unittest.main(verbosity=2)
