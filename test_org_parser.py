# test_org_parser.py
#
# Run:
#   python -m unittest -v
#
# Line classifier and the field parsers it uses.

import unittest

import org_parser as m
from config_loader import DEFAULT_CONFIG

CFG = DEFAULT_CONFIG


def events_for(lines):
    return [event for _, event in m.iter_org_events(lines, CFG)]


def types_for(lines):
    return [e.type for e in events_for(lines) if e.type != "preamble_end"]


class TestParseHeadline(unittest.TestCase):
    KW = CFG.all_todo_keywords

    def test_full_heading(self):
        fields = m.parse_headline("TODO [#A] Write report :work:urgent:", self.KW)
        self.assertEqual(fields["todo_keyword"], "TODO")
        self.assertEqual(fields["priority"], "A")
        self.assertEqual(fields["title"], "Write report")
        self.assertEqual(fields["tags"], ["work", "urgent"])
        self.assertFalse(fields["commented"])

    def test_plain_title(self):
        fields = m.parse_headline("Just a title", self.KW)
        self.assertIsNone(fields["todo_keyword"])
        self.assertIsNone(fields["priority"])
        self.assertEqual(fields["title"], "Just a title")
        self.assertEqual(fields["tags"], [])

    def test_keyword_must_be_whole_word(self):
        fields = m.parse_headline("TODOS are fun", self.KW)
        self.assertIsNone(fields["todo_keyword"])
        self.assertEqual(fields["title"], "TODOS are fun")

    def test_priority_without_keyword(self):
        fields = m.parse_headline("[#C] Low", self.KW)
        self.assertEqual(fields["priority"], "C")
        self.assertEqual(fields["title"], "Low")

    def test_comment_marker(self):
        fields = m.parse_headline("COMMENT Draft", self.KW)
        self.assertTrue(fields["commented"])
        self.assertEqual(fields["title"], "Draft")

    def test_tags_only_at_end(self):
        self.assertEqual(m.parse_headline("Title :not:tags: inside", self.KW)["tags"], [])
        self.assertEqual(m.parse_headline("Title:glued:", self.KW)["tags"], [])

    def test_duplicate_tags_collapse(self):
        self.assertEqual(m.extract_heading_tags("T :a:b:a:"), ["a", "b"])

    def test_unknown_keyword_not_recognized(self):
        fields = m.parse_headline("OPEN Thing", self.KW)
        self.assertIsNone(fields["todo_keyword"])
        self.assertEqual(fields["title"], "OPEN Thing")


class TestFieldParsers(unittest.TestCase):
    # ---------- planning ----------
    def test_planning_line_two_items(self):
        items = m.parse_planning_line("SCHEDULED: <2024-03-15 Fri> DEADLINE: <2024-03-20 Wed>")
        self.assertEqual([k for k, _ in items], ["SCHEDULED", "DEADLINE"])
        self.assertEqual(items[1][1].raw_value, "<2024-03-20 Wed>")

    def test_planning_line_with_junk_is_rejected(self):
        self.assertIsNone(m.parse_planning_line("SCHEDULED: <2024-03-15 Fri> junk"))
        self.assertIsNone(m.parse_planning_line("SCHEDULED: <2024-02-30 Fri>"))

    # ---------- properties ----------
    def test_property_lines(self):
        props = m.parse_property_lines([":ID: abc", ":EMPTY:", "not a property", ":EFFORT: 1:30"])
        self.assertEqual(props, {"ID": "abc", "EMPTY": "", "EFFORT": "1:30"})
        self.assertEqual(list(props), ["ID", "EMPTY", "EFFORT"])

    # ---------- src options ----------
    def test_src_options(self):
        opts = m.parse_src_block_options("python -n :results output :session foo")
        self.assertEqual(opts["language"], "python")
        self.assertEqual(opts["switches"], ["-n"])
        self.assertEqual(opts["parameters"], {"results": "output", "session": "foo"})

    def test_src_options_value_with_spaces(self):
        opts = m.parse_src_block_options("emacs-lisp :var x=1 y=2 :exports both")
        self.assertEqual(opts["parameters"], {"var": "x=1 y=2", "exports": "both"})

    def test_src_options_switch_argument(self):
        opts = m.parse_src_block_options('python -l "(ref:%s)"')
        self.assertEqual(opts["switches"], ['-l "(ref:%s)"'])

    def test_src_options_empty(self):
        opts = m.parse_src_block_options("")
        self.assertIsNone(opts["language"])
        self.assertEqual(opts["parameters"], {})

    # ---------- #+TODO ----------
    def test_todo_keyword_line_with_bar(self):
        self.assertEqual(
            m.parse_todo_keyword_line("TODO(t) NEXT | DONE(d!) CANCELLED"),
            (["TODO", "NEXT"], ["DONE", "CANCELLED"]),
        )

    def test_todo_keyword_line_without_bar(self):
        self.assertEqual(m.parse_todo_keyword_line("TODO WAIT DONE"), (["TODO", "WAIT"], ["DONE"]))


class TestInlineScanner(unittest.TestCase):
    def test_link_types(self):
        self.assertEqual(m.link_type_for("https://example.com"), "https")
        self.assertEqual(m.link_type_for("file:notes.org"), "file")
        self.assertEqual(m.link_type_for("./notes.org"), "file")
        self.assertEqual(m.link_type_for("/tmp/notes.org"), "file")
        self.assertEqual(m.link_type_for("mailto:a@b.c"), "mailto")
        self.assertEqual(m.link_type_for("id:1234"), "id")
        self.assertEqual(m.link_type_for("#custom"), "custom-id")
        self.assertEqual(m.link_type_for("*Some heading"), "fuzzy")
        self.assertEqual(m.link_type_for("Some heading"), "fuzzy")
        self.assertEqual(m.link_type_for("unknown:thing"), "fuzzy")

    def test_scan_links_and_timestamps_in_order(self):
        text = "See [[https://example.com][Example]] on <2024-03-15 Fri>."
        objects = m.scan_inline_objects(text)

        self.assertEqual([o.type for o in objects], ["link", "timestamp"])
        link, ts = objects
        self.assertEqual(link.path, "https://example.com")
        self.assertEqual(link.description, "Example")
        self.assertEqual(text[link.span[0]:link.span[1]], link.raw_value)
        self.assertEqual(text[ts.span[0]:ts.span[1]], "<2024-03-15 Fri>")

    def test_scan_timestamp_inside_link_not_reported(self):
        objects = m.scan_inline_objects("[[file:x.org][<2024-03-15>]]")
        self.assertEqual([o.type for o in objects], ["link"])

    def test_scan_skips_invalid_timestamp(self):
        self.assertEqual(m.scan_inline_objects("on <2024-13-40> maybe"), [])


class TestLineClassifier(unittest.TestCase):
    # ---------- preamble ----------
    def test_preamble_keywords_and_properties(self):
        state = m.new_state(CFG)
        collected = []
        for line in ["#+TITLE: Hello", "#+PROPERTY: CATEGORY notes", "", "Text"]:
            state, events = m.parse_org_line(line, CFG, state)
            collected.extend(e.type for e in events)

        self.assertEqual(collected, ["preamble_kv", "preamble_kv", "blank", "preamble_end", "text"])
        self.assertEqual(state.preamble.title, "Hello")
        self.assertEqual(state.preamble.properties, {"CATEGORY": "notes"})
        self.assertNotIn("PROPERTY", state.preamble.headers)

    def test_in_buffer_todo_keywords(self):
        events = [e for e in events_for(["#+TODO: OPEN | CLOSED_OK", "* OPEN Thing", "* TODO Thing", "* CLOSED_OK Old"])
                  if e.type == "heading"]
        self.assertEqual(events[0].data["todo_keyword"], "OPEN")
        self.assertEqual(events[0].data["todo_type"], "todo")
        self.assertIsNone(events[1].data["todo_keyword"])
        self.assertEqual(events[1].data["title"], "TODO Thing")
        self.assertEqual(events[2].data["todo_type"], "done")

    # ---------- headings ----------
    def test_heading_event(self):
        (event,) = [e for e in events_for(["** TODO [#B] Fix bug :work:urgent:"]) if e.type == "heading"]
        self.assertEqual(event.data["level"], 2)
        self.assertEqual(event.data["todo_keyword"], "TODO")
        self.assertEqual(event.data["priority"], "B")
        self.assertEqual(event.data["title"], "Fix bug")
        self.assertEqual(event.data["tags"], ["work", "urgent"])

    def test_stars_without_space_are_text(self):
        self.assertEqual(types_for(["*bold* text"]), ["text"])
        self.assertEqual(types_for(["***"]), ["text"])

    # ---------- blocks ----------
    def test_verbatim_block_is_opaque(self):
        self.assertEqual(
            types_for(["#+BEGIN_SRC python", "* not a heading", "#+END_EXAMPLE", "#+END_SRC"]),
            ["src_begin", "block_line", "block_line", "src_end"],
        )

    def test_orphan_end_is_text(self):
        self.assertEqual(types_for(["Para", "#+END_QUOTE"]), ["text", "text"])

    def test_mismatched_end_inside_block_is_text(self):
        self.assertEqual(
            types_for(["#+BEGIN_QUOTE", "#+END_CENTER", "#+END_QUOTE"]),
            ["block_begin", "text", "block_end"],
        )

    def test_nested_blocks(self):
        events = [e for e in events_for(["#+BEGIN_QUOTE", "#+BEGIN_CENTER", "x", "#+END_CENTER", "#+END_QUOTE"])
                  if e.type != "preamble_end"]
        self.assertEqual([e.type for e in events], ["block_begin", "block_begin", "text", "block_end", "block_end"])
        self.assertEqual([e.data["name"] for e in events if e.type == "block_end"], ["center", "quote"])

    def test_block_case_is_recorded(self):
        (event,) = [e for e in events_for(["#+begin_quote"]) if e.type == "block_begin"]
        self.assertFalse(event.data["upper_case"])

    def test_unterminated_block_closed_at_end(self):
        self.assertEqual(types_for(["#+BEGIN_QUOTE", "text"]), ["block_begin", "text", "block_end"])

    # ---------- drawers / metadata ----------
    def test_planning_in_metadata_zone(self):
        events = events_for(["* H", "SCHEDULED: <2024-03-15 Fri> DEADLINE: <2024-03-20 Wed>"])
        self.assertEqual(events[-1].type, "planning")
        self.assertEqual(len(events[-1].data["items"]), 2)

    def test_planning_after_text_is_text(self):
        self.assertEqual(types_for(["* H", "Text", "SCHEDULED: <2024-03-15>"])[-1], "text")

    def test_blank_line_closes_metadata_zone(self):
        self.assertEqual(types_for(["* H", "", "SCHEDULED: <2024-03-15>"])[-1], "text")

    def test_property_drawer_event(self):
        events = events_for(["* H", ":PROPERTIES:", ":ID: 42", ":END:"])
        self.assertEqual(events[-1].type, "property_drawer")
        self.assertEqual(events[-1].data["properties"], {"ID": "42"})

    def test_properties_outside_metadata_is_plain_drawer(self):
        events = events_for(["* H", "Some text", ":PROPERTIES:", ":A: 1", ":END:"])
        self.assertEqual(events[-1].type, "drawer")
        self.assertEqual(events[-1].data["name"], "PROPERTIES")

    def test_unterminated_drawer_closed_implicitly(self):
        events = events_for(["* H", ":LOGBOOK:", "CLOCK: [2024-01-15 Mon 10:00]"])
        self.assertEqual(events[-1].type, "drawer")
        self.assertTrue(events[-1].data["implicit"])
        self.assertEqual(events[-1].data["lines"], ["CLOCK: [2024-01-15 Mon 10:00]"])

    def test_heading_closes_open_drawer(self):
        types = types_for(["* A", ":NOTES:", "x", "* B"])
        self.assertEqual(types, ["heading", "drawer", "heading"])

    def test_close_open_regions_drawer_then_blocks(self):
        state = m.OrgState()
        for line in ["* H", "#+BEGIN_QUOTE", "#+BEGIN_CENTER", ":NOTES:", "x"]:
            state, _ = m.parse_org_line(line, CFG, state)

        events = m.close_open_regions(state)

        self.assertEqual([e.type for e in events], ["drawer", "block_end", "block_end"])
        self.assertEqual([e.data["name"] for e in events], ["NOTES", "center", "quote"])
        self.assertEqual(m.close_open_regions(state), [])

    # ---------- clock ----------
    def test_clock_after_heading(self):
        events = events_for(["* H", "CLOCK: [2024-01-15 Mon 10:00]--[2024-01-15 Mon 11:00] =>  1:00"])
        self.assertEqual(events[-1].type, "clock")
        self.assertEqual(events[-1].data["entry"].duration, "1:00")

    def test_clock_before_heading_is_text(self):
        self.assertEqual(
            types_for(["CLOCK: [2024-01-15 Mon 10:00]--[2024-01-15 Mon 11:00] =>  1:00"]),
            ["text"],
        )

    # ---------- tables / keywords / comments ----------
    def test_table_rows_and_formula(self):
        events = [e for e in events_for(["| a | b |", "|---+---|", "#+TBLFM: $2=$1*2::@1$1=x"])
                  if e.type != "preamble_end"]
        self.assertEqual([e.type for e in events], ["table_row", "table_hline", "tblfm"])
        self.assertEqual(events[0].data["cells"], ["a", "b"])
        self.assertEqual(events[2].data["formulas"], ["$2=$1*2", "@1$1=x"])

    def test_dash_cells_are_not_a_rule(self):
        self.assertEqual(types_for(["| - | - |", "|-+-|", "  |---|"]), ["table_row", "table_hline", "table_hline"])

    def test_keyword_after_preamble(self):
        events = events_for(["Text", "#+NAME: results"])
        self.assertEqual(events[-1].type, "keyword")
        self.assertEqual(events[-1].data["key"], "NAME")
        self.assertEqual(events[-1].data["value"], "results")

    def test_comment_lines(self):
        self.assertEqual(types_for(["# a comment", "#", "#not a comment"]), ["comment", "comment", "text"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
