import random

from helpdesk.services.clarity import (
    ClarityOptimizer,
    PhrasePool,
    add_step_formatting,
    break_long_sentences,
    calculate_clarity_score,
    convert_to_active_voice,
    replace_vague_phrases,
    simplify_jargon,
)


def test_jargon_is_replaced_with_plain_words() -> None:
    text = simplify_jargon("Update the firmware and check the API configuration.")

    assert text == "Update the device software and check the connection interface settings."


def test_long_sentence_is_split_at_first_conjunction() -> None:
    sentence = (
        "Open the settings page on the device and then scroll all the way down until "
        "you find the section labelled network options for wireless."
    )

    result = break_long_sentences(sentence)

    assert result.startswith("Open the settings page on the device. And then scroll")


def test_short_sentences_are_left_alone() -> None:
    text = "Open settings and tap reset."

    assert break_long_sentences(text) == text


def test_passive_phrases_become_active() -> None:
    assert convert_to_active_voice("First, it is suggested that you restart.") == (
        "First, I suggest that you restart."
    )
    assert convert_to_active_voice("Luckily this can be done from the menu.") == (
        "Luckily you can do this from the menu."
    )


def test_vague_phrases_use_the_injected_pool() -> None:
    pool = PhrasePool({"It seems like": ("Here's the plan:",)})

    assert replace_vague_phrases("It seems like the battery is low.", pool) == (
        "Here's the plan: the battery is low."
    )


def test_seeded_pool_is_reproducible() -> None:
    first = PhrasePool(rng=random.Random(7))
    second = PhrasePool(rng=random.Random(7))

    picks_first = [first.choose("It seems like") for _ in range(5)]
    picks_second = [second.choose("It seems like") for _ in range(5)]

    assert picks_first == picks_second


def test_instruction_lists_get_numbered_steps() -> None:
    text = "Here is what to do. Check the cable. Try another outlet. Press the power button."

    formatted = add_step_formatting(text)

    assert formatted.split("\n") == [
        "Here is what to do:",
        "1. Check the cable",
        "2. Try another outlet",
        "3. Press the power button",
    ]


def test_prose_without_instructions_is_not_numbered() -> None:
    text = "Your order shipped. It arrives Monday. Thanks for waiting."

    assert add_step_formatting(text) == text


def test_clarity_score_rewards_short_direct_steps() -> None:
    plain = calculate_clarity_score("Try this. Check the cable.")
    jargon = calculate_clarity_score(
        "The firmware protocol must initialize before the API can authenticate the configuration"
    )

    assert plain > jargon
    assert 0.1 <= jargon <= 1.0


def test_optimizer_reports_applied_optimizations() -> None:
    optimizer = ClarityOptimizer(PhrasePool({"Perhaps": ("Let's try:",)}))

    result = optimizer.optimize(
        "Perhaps check the firmware version. Try restarting the unit. Check the cable."
    )

    assert "device software" in result.optimized_response
    assert "1. " in result.optimized_response
    assert "clarity_improved" in result.optimizations
    assert "formatting_added" in result.optimizations
    assert result.to_dict()["original_response"].startswith("Perhaps")
