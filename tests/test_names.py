"""Unit tests for core/names.py -- name variants and greedy first-match selection."""

from core.names import generate_name_variants, matches_variant, pick_first_match


class TestGenerateNameVariants:
    def test_compound_first_and_middle(self):
        variants = generate_name_variants("Mary Jane", "Ann Louise")
        assert set(variants) >= {"Mary Jane", "Mary", "Mary Jane A", "Mary Jane L", "Mary A", "Mary L"}

    def test_order_is_most_specific_first(self):
        assert generate_name_variants("Mary Jane", "Ann Louise") == (
            "Mary Jane",
            "Mary",
            "Mary Jane A",
            "Mary Jane L",
            "Mary A",
            "Mary L",
        )

    def test_single_first_name_no_middle(self):
        assert generate_name_variants("Robert") == ("Robert",)

    def test_single_first_name_with_middle(self):
        assert generate_name_variants("Robert", "James") == ("Robert", "Robert J")

    def test_empty_middle_treated_as_absent(self):
        assert generate_name_variants("Robert", "") == ("Robert",)
        assert generate_name_variants("Robert", "   ") == ("Robert",)

    def test_no_duplicates(self):
        """Repeated middle initials collapse to one variant each."""
        variants = generate_name_variants("Ana", "Beth Bea")
        assert variants == ("Ana", "Ana B")
        assert len(variants) == len(set(variants))

    def test_deterministic(self):
        assert generate_name_variants("Mary Jane", "Ann Louise") == generate_name_variants("Mary Jane", "Ann Louise")


class TestMatching:
    def test_case_insensitive(self):
        assert matches_variant("MARY jane", ("Mary Jane",))

    def test_none_candidate_never_matches(self):
        assert not matches_variant(None, ("Mary",))
        assert not matches_variant("", ("Mary",))

    def test_pick_first_match_is_greedy(self):
        """The first candidate in platform order wins, even if a later one is a more specific match."""
        candidates = [
            {"id": "1", "nameFirst": "Bob"},
            {"id": "2", "nameFirst": "mary"},
            {"id": "3", "nameFirst": "Mary Jane"},
        ]
        variants = generate_name_variants("Mary Jane", "Ann")
        assert pick_first_match(candidates, variants)["id"] == "2"

    def test_pick_first_match_none(self):
        candidates = [{"id": "1", "nameFirst": "Bob"}, {"id": "2"}]
        assert pick_first_match(candidates, ("Mary",)) is None

    def test_pick_first_match_empty(self):
        assert pick_first_match([], ("Mary",)) is None
