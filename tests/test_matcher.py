import unittest

from explain_flame.enrich import FLAME_TITLES, FOREIGN_TITLES, LabelDetail, MatchConfig, match
from explain_flame.enrich.matcher import candidates, score


def detail(label: str, **fields) -> LabelDetail:
    return LabelDetail(label=label, match_key=label.lower(), **fields)


SCAN = detail(
    "TABLE SCAN [orders] starts=1 rows=50",
    operation="Table scan on orders",
    table_name="orders",
    actual_rows=50,
)
FILTER = detail(
    "FILTER (orders.total > 100) starts=1",
    operation="Filter: (orders.total > 100)",
    table_name="orders",
)


class TestScore(unittest.TestCase):
    def test_all_signals_add_up(self):
        title = "TABLE SCAN [orders] starts=1 rows=50 (5 ms, 50.00%)"
        # label 20 + table 3 + rows 5 + starts 3
        self.assertEqual(score(title, SCAN), 31)

    def test_rows_must_agree(self):
        title = "TABLE SCAN [orders] starts=1 rows=51 (5 ms, 50.00%)"
        self.assertEqual(score(title, SCAN), 3 + 3)

    def test_index_signal(self):
        lookup = detail("", index_name="idx_cust", actual_loops=40)
        self.assertEqual(score("INDEX LOOKUP [o.idx_cust] (4 ms, 30%)", lookup), 10)
        self.assertEqual(score("Index lookup on o using idx_cust", lookup), 10)
        self.assertEqual(score("INDEX LOOKUP [o.idx_customer]", lookup), 0)

    def test_starts_and_loops_spellings(self):
        lookup = detail("", actual_loops=40)
        self.assertEqual(score("anything starts=40", lookup), 3)
        self.assertEqual(score("anything loops: 40", lookup), 3)
        self.assertEqual(score("anything starts=4", lookup), 0)

    def test_keywords_only_when_enabled(self):
        title = "Table scan on orders rows=50"
        self.assertEqual(score(title, SCAN, FLAME_TITLES), 3 + 5)
        self.assertEqual(score(title, SCAN, FOREIGN_TITLES), 3 + 5 + 4)


class TestMatch(unittest.TestCase):
    def test_label_and_table_beat_table_only_regardless_of_order(self):
        title = "TABLE SCAN [orders] starts=1 rows=50 (5 ms, 50.00%)"
        self.assertIs(match(title, [FILTER, SCAN]), SCAN)
        self.assertIs(match(title, [SCAN, FILTER]), SCAN)

    def test_table_only_stays_below_floor(self):
        self.assertIsNone(match("Materialize orders", [FILTER]))

    def test_index_alone_reaches_floor(self):
        lookup = detail("", index_name="idx_cust")
        self.assertIs(match("INDEX LOOKUP [o.idx_cust]", [lookup]), lookup)

    def test_foreign_titles_accept_keyword_evidence(self):
        title = "Table scan on orders rows=50"
        self.assertIsNone(match(title, [SCAN], FLAME_TITLES))
        self.assertIs(match(title, [SCAN], FOREIGN_TITLES), SCAN)

    def test_tie_goes_to_first_candidate(self):
        first = detail("STREAM starts=1", operation="Stream results")
        second = detail("STREAM starts=1", operation="Stream results again")
        title = "STREAM starts=1 (1 ms, 10.00%)"
        self.assertIs(match(title, [first, second]), first)
        self.assertIs(match(title, [second, first]), second)

    def test_no_candidates(self):
        self.assertIsNone(match("all (10 ms, 100%)", []))

    def test_custom_floor(self):
        strict = MatchConfig(floor=40)
        title = "TABLE SCAN [orders] starts=1 rows=50 (5 ms, 50.00%)"
        self.assertIsNone(match(title, [SCAN], strict))

    def test_deterministic(self):
        title = "FILTER (orders.total > 100) starts=1 (2 ms, 20.00%)"
        results = {match(title, [SCAN, FILTER]) for _ in range(5)}
        self.assertEqual(results, {FILTER})

    def test_candidates_keep_input_order(self):
        title = "TABLE SCAN [orders] starts=1 rows=50"
        scored = list(candidates(title, [FILTER, SCAN]))
        self.assertEqual([c.detail for c in scored], [FILTER, SCAN])
        self.assertEqual([c.score for c in scored], [6, 31])


if __name__ == "__main__":
    unittest.main()
