import pytest

from media_directory.chain import (
    ChainMaterializer,
    SubmissionContext,
    is_identifier,
    sanitize_name,
    split_submission,
)
from media_directory.errors import InvalidSubmission, MisconfiguredVocabulary, TermCreationError


@pytest.fixture
def materializer(store, registry):
    return ChainMaterializer(store, lambda: registry.vocabulary_for("image"))


def test_materialize_creates_new_names(store, materializer):
    with SubmissionContext() as context:
        chain = materializer.materialize("5|Vacation|Summer", context)
    assert chain == [5, 6, 7]
    assert (store.terms[6].name, store.terms[6].parent, store.terms[6].vid) == ("Vacation", 5, "media_tree")
    assert (store.terms[7].name, store.terms[7].parent, store.terms[7].vid) == ("Summer", 6, "media_tree")


def test_materialize_twice_in_one_submission(store, materializer):
    context = SubmissionContext()
    first = materializer.materialize("1|3|New|Newer", context)
    count = len(store.terms)
    second = materializer.materialize("1|3|New|Newer", context)
    assert second == first
    assert len(store.terms) == count
    assert [store.terms[tid].parent for tid in first[2:]] == [3, first[2]]


def test_closed_submission_forgets_chain(store, materializer):
    with SubmissionContext("abc") as context:
        materializer.materialize("1|New", context)
    assert context.closed
    assert context.get_chain(materializer.field_name) is None


def test_separate_submissions_create_separately(store, materializer):
    with SubmissionContext() as first:
        materializer.materialize("1|New", first)
    with SubmissionContext() as second:
        materializer.materialize("1|New", second)
    assert [t.name for t in store.terms.values()].count("New") == 2


def test_materialize_identifiers_only(store):
    def no_vocabulary():
        raise AssertionError("vocabulary should not be needed")

    materializer = ChainMaterializer(store, no_vocabulary)
    count = len(store.terms)
    assert materializer.materialize("1|3|4", SubmissionContext()) == [1, 3, 4]
    assert len(store.terms) == count


def test_materialize_misconfigured_vocabulary(store, registry):
    materializer = ChainMaterializer(store, lambda: registry.vocabulary_for("video"))
    count = len(store.terms)
    with pytest.raises(MisconfiguredVocabulary):
        materializer.materialize("1|New", SubmissionContext())
    assert len(store.terms) == count


@pytest.mark.parametrize("value", ["", "   ", "1||New", "1|New|", "Vacation|Summer"])
def test_materialize_invalid_values(materializer, value):
    with pytest.raises(InvalidSubmission):
        materializer.materialize(value, SubmissionContext())


def test_materialize_strips_markup(store, materializer):
    chain = materializer.materialize("1|<b>Trip</b>", SubmissionContext())
    assert store.terms[chain[-1]].name == "Trip"


def test_creation_failure_aborts_scan(store, materializer):
    context = SubmissionContext()
    count = len(store.terms)
    with pytest.raises(TermCreationError):
        materializer.materialize("1|<i></i>|More", context)
    assert len(store.terms) == count
    assert context.get_chain(materializer.field_name) is None


def test_closed_context_rejects_new_chains():
    context = SubmissionContext()
    context.close()
    with pytest.raises(InvalidSubmission):
        context.set_chain("media_directory", [1])


def test_materialize_closed_context_creates_nothing(store, materializer):
    context = SubmissionContext()
    context.close()
    count = len(store.terms)
    with pytest.raises(InvalidSubmission):
        materializer.materialize("1|New", context)
    assert len(store.terms) == count


@pytest.mark.parametrize(
    "token, expected",
    [("12", True), ("-3", True), ("012", False), ("1.5", False), ("abc", False), ("", False)],
)
def test_is_identifier(token, expected):
    assert is_identifier(token) is expected


def test_split_submission_trims_tokens():
    assert split_submission(" 1 | Summer trip ") == ["1", "Summer trip"]


def test_sanitize_name():
    assert sanitize_name("<script>x</script>Holidays") == "xHolidays"
