from __future__ import annotations

from nochicken.session.manager import ConversationContextManager


def test_minimal_prompt(manager: ConversationContextManager) -> None:
    assert manager.generate_context_prompt("nobody") == (
        "User Context:\n"
        "Communication style: casual\n"
        "Response length: medium\n"
    )


def test_full_prompt_is_deterministic(manager: ConversationContextManager) -> None:
    turns = [
        ("hi", "hello!"),
        ("add milk", "Added milk to your pantry"),
        ("what can I cook?", "Try pancakes"),
        ("start pancakes", "Let's go"),
    ]
    for user_input, response in turns:
        manager.add_turn("u1", {
            "input": user_input,
            "response": response,
            "confidence": 0.9,
            "entities": [{"type": "ingredient", "value": "Milk"}] if "milk" in user_input else [],
        })
    manager.add_turn("u1", {
        "input": "pancakes please",
        "response": "Pancakes it is",
        "confidence": 1.0,
        "entities": [{"type": "recipe", "value": "Pancakes"}],
    })
    manager.set_state("u1", current_recipe="recipe-17", shopping_mode=True, planning_meal="breakfast")
    manager.set_user_preference("u1", "communication_style", "concise")
    manager.set_user_preference("u1", "response_length", "short")

    expected = (
        "User Context:\n"
        "Recent conversation:\n"
        "- User: what can I cook?\n"
        "- Assistant: Try pancakes\n"
        "- User: start pancakes\n"
        "- Assistant: Let's go\n"
        "- User: pancakes please\n"
        "- Assistant: Pancakes it is\n"
        "Current topics: milk, pancakes\n"
        "Currently working with recipe: recipe-17\n"
        "User is in shopping mode\n"
        "Planning meal for: breakfast\n"
        "Communication style: concise\n"
        "Response length: short\n"
    )

    first = manager.generate_context_prompt("u1")
    assert first == expected
    assert manager.generate_context_prompt("u1") == first


def test_prompt_does_not_change_context(manager: ConversationContextManager) -> None:
    manager.add_turn("u1", {"input": "hi", "response": "hey", "confidence": 1.0})
    before = manager.get_context("u1").current_session.last_activity

    manager.generate_context_prompt("u1")

    assert manager.get_context("u1").current_session.last_activity == before
    assert len(manager.get_recent_turns("u1")) == 1
