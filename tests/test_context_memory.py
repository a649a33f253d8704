from helpdesk.services.context_memory import (
    FRUSTRATION_CRITICAL,
    FRUSTRATION_HIGH,
    FRUSTRATION_LOW,
    FRUSTRATION_MEDIUM,
    MAX_QUESTIONS,
    STYLE_DETAILED,
    STYLE_IMPATIENT,
    STYLE_NON_TECHNICAL,
    STYLE_TECHNICAL,
    ContextMemoryStore,
    detect_communication_style,
    detect_frustration_level,
    jaccard_similarity,
)


def test_communication_style_detection_order() -> None:
    assert detect_communication_style("The firmware returns error code 12") == STYLE_TECHNICAL
    assert detect_communication_style("I need this fixed ASAP") == STYLE_IMPATIENT
    assert detect_communication_style("word " * 60) == STYLE_DETAILED
    assert detect_communication_style("It stopped working") == STYLE_NON_TECHNICAL


def test_frustration_levels() -> None:
    assert detect_frustration_level("This is unacceptable") == FRUSTRATION_CRITICAL
    assert detect_frustration_level("I'm so frustrated") == FRUSTRATION_HIGH
    assert detect_frustration_level("Please help me") == FRUSTRATION_MEDIUM
    assert detect_frustration_level("Hello there") == FRUSTRATION_LOW


def test_jaccard_similarity_uses_word_sets() -> None:
    assert jaccard_similarity("Is it plugged in", "is IT plugged   in") == 1.0
    assert jaccard_similarity("", "") == 0.0
    assert jaccard_similarity("a b", "c d") == 0.0


def test_duplicate_needs_similarity_above_threshold() -> None:
    store = ContextMemoryStore()
    store.remember_question("t1", "Is the power cable connected to the wall outlet?")

    same = store.check_duplicate("t1", "is the power cable connected to the wall outlet?")
    different = store.check_duplicate("t1", "What color is the status light?")

    assert same.is_duplicate
    assert same.matched_question == "Is the power cable connected to the wall outlet?"
    assert same.suggestion.endswith("is the power cable connected to the wall outlet?")
    assert not different.is_duplicate


def test_only_the_most_recent_questions_are_kept() -> None:
    store = ContextMemoryStore()
    for number in range(MAX_QUESTIONS + 2):
        store.remember_question("t1", f"question number {number}?")

    asked = list(store.get("t1").questions_asked)

    assert len(asked) == MAX_QUESTIONS
    assert asked[0] == "question number 2?"
    assert not store.check_duplicate("t1", "question number 0?").is_duplicate


def test_record_turn_updates_profile_and_attempts() -> None:
    store = ContextMemoryStore()

    store.record_turn("t1", "This is ridiculous, fix it")
    memory = store.record_turn("t1", "Please help, the API keeps failing")

    assert memory.resolution_attempts == 2
    assert memory.customer_communication_style == STYLE_TECHNICAL
    assert memory.customer_frustration_level == FRUSTRATION_MEDIUM
    assert store.has("t1")
    store.evict("t1")
    assert not store.has("t1")
