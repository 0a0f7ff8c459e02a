"""
Checklist prompts.

Two prompt families:
- generation: build a titled, ordered checklist from observations
- update: report newly completed item ids and newly discovered steps

Both ask for bare JSON; the parsers tolerate surrounding text anyway.
"""

_GENERATION_FORMAT = """IMPORTANT: You MUST respond with ONLY a valid JSON object in this exact format, no other text:
{
  "title": "%(title_hint)s",
  "checklist": [
    { "id": "1", "text": "Step description here", "completed": false },
    { "id": "2", "text": "Another step", "completed": false }
  ]
}"""


def _generation_format(title_hint: str) -> str:
    return _GENERATION_FORMAT % {'title_hint': title_hint}


def get_generation_system_prompt(mode: str = 'cooking', max_items: int = 10) -> str:
    """
    System prompt for one-shot checklist generation.

    Args:
        mode: 'cooking' or 'math'
        max_items: Upper bound on the number of steps

    Returns:
        Prompt string
    """
    min_items = min(5, max_items)

    if mode == 'math':
        return f"""You are a helpful math tutor. Based on the video descriptions of the math problem, create a checklist of steps to solve it.

{_generation_format('Problem Type/Topic')}

Rules:
- Generate {min_items}-{max_items} actionable checklist items for solving the problem
- Each item should be a clear step in the solution process
- Mark items as "completed": true if the video shows that step was already done
- Mark items as "completed": false if the step still needs to be done
- Order items in logical problem-solving sequence
- The title should describe the type of math problem being solved"""

    return f"""You are a helpful cooking assistant. Based on the video descriptions provided, create a checklist of steps the person should follow or has been following.

{_generation_format('Recipe/Dish Name')}

Rules:
- Generate {min_items}-{max_items} actionable checklist items based on what you observe
- Each item should be a clear, concise cooking step
- Mark items as "completed": true if the video shows that step was already done
- Mark items as "completed": false if the step still needs to be done or is in progress
- Order items logically (prep work first, then cooking steps)
- The title should describe what's being made based on the video"""


def build_generation_user_message(observations: list, mode: str = 'cooking', context_hint: str = '') -> str:
    combined = "\n\n".join(observations)
    if mode == 'math':
        message = f"Here are the video descriptions of the math problem:\n\n{combined}"
        if context_hint:
            message += f"\n\nThe user mentioned the topic is: {context_hint}"
    else:
        message = f"Here are the video descriptions of the cooking session:\n\n{combined}"
        if context_hint:
            message += f"\n\nThe user mentioned they are making: {context_hint}"
    return message


def get_update_system_prompt(mode: str = 'cooking') -> str:
    """System prompt for incremental checklist updates."""
    if mode == 'math':
        role = "You are a math problem progress tracker. You will be given a checklist of problem-solving steps and recent video descriptions of the student's work."
    else:
        role = "You are a cooking progress tracker. You will be given a checklist of cooking steps and recent video descriptions of what's happening in the kitchen."

    return f"""{role}

Your job is to determine which steps have been completed based on what you observe in the video descriptions, and whether the person is clearly doing an important step that is missing from the checklist.

IMPORTANT RULES:
1. You MUST respond with ONLY a JSON object of the form {{"completedIds": [...], "newItems": [{{"text": "..."}}]}}
2. ONLY include IDs for items that the video shows have been done
3. If an item was already marked COMPLETED, do NOT include it (we only need newly completed items)
4. If no new items are completed, use an empty array: "completedIds": []
5. Be conservative - only mark as complete if you're confident the step was done
6. Only add newItems for clearly missing steps; otherwise use "newItems": []

Example response: {{"completedIds": ["2", "3"], "newItems": []}}"""


def format_checklist_for_prompt(items) -> str:
    lines = []
    for index, item in enumerate(items):
        status = 'COMPLETED' if item.completed else 'NOT COMPLETED'
        lines.append(f"{index + 1}. [{status}] {item.text} (id: {item.id})")
    return "\n".join(lines)


def build_update_user_message(items, observations: list) -> str:
    checklist_text = format_checklist_for_prompt(items)
    combined = "\n\n".join(observations)
    return f"""Current checklist:
{checklist_text}

Recent video observations:
{combined}

Which item IDs (if any) should now be marked as completed, and which steps (if any) are missing?"""
