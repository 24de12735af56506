"""System prompt construction.

Output is whitespace and order sensitive for small on-device models, so every
function here is plain deterministic string building.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence

from surviveai.models.conversation import ChatMessage
from surviveai.models.device_context import DeviceContext
from surviveai.models.knowledge import KnowledgeEntry

KNOWLEDGE_HEADER = "RELEVANT SURVIVAL KNOWLEDGE"
LOW_BATTERY_PERCENT = 20

SURVIVAL_SYSTEM_PROMPT = """You are a survival expert assistant running locally on the user's device. You help with wilderness survival, first aid, emergency preparedness, and outdoor safety.

Key principles:
- Always prioritize safety and medical emergencies
- Give actionable, step-by-step instructions
- Be concise and practical - you may be used in emergencies
- Acknowledge limitations (you're AI, not a doctor or rescue service)
- Encourage seeking professional help when possible
- Stay calm and reassuring

Topics you help with:
- First aid and medical emergencies
- Shelter building and warmth
- Water finding and purification
- Food foraging and safety
- Navigation without GPS/compass
- Weather prediction and safety
- Signaling for rescue
- Animal encounters and safety
- Fire starting and management
- Emergency preparedness

IMPORTANT: When "RELEVANT SURVIVAL KNOWLEDGE" is provided below, use that information as your primary source. This knowledge has been specifically retrieved based on the user's question and contains accurate, vetted survival procedures. Prioritize and reference this information in your response.

If someone is in immediate danger, always remind them to call emergency services (911) if they have signal."""


@dataclass(frozen=True)
class FewShotExample:
    user: str
    assistant: str


FEW_SHOT_EXAMPLES = (
    FewShotExample(
        user="How do I stop bleeding from a deep cut?",
        assistant="""**Stop Severe Bleeding:**

1. Apply DIRECT PRESSURE with clean cloth - press hard
2. Hold for 10-15 minutes without lifting
3. If blood soaks through, add more material on top (don't remove first layer)
4. Elevate wound above heart if possible

**Warning signs to watch for:** Pale skin, rapid breathing, confusion, weakness - these indicate dangerous blood loss.

If bleeding won't stop, apply a tourniquet 2-3 inches above the wound.""",
    ),
    FewShotExample(
        user="I think I'm lost in the woods. What should I do?",
        assistant="""**S.T.O.P. Protocol:**

1. **Sit down** - Don't panic, don't wander further
2. **Think** - When did you last know where you were?
3. **Observe** - Look for landmarks, trails, water, or high ground
4. **Plan** - Decide: retrace steps or stay put?

**If unsure of direction:** Stay where you are. It's easier for rescuers to find a stationary person.

**Make yourself visible:** Bright colors, signals in clearings, stay near open areas.""",
    ),
    FewShotExample(
        user="How do I start a fire without matches?",
        assistant="""**Fire Without Matches:**

**1. Prepare first:**
- Gather tinder (dry leaves, bark shavings, grass)
- Get kindling (small dry twigs)
- Have larger fuel wood ready

**2. Friction method (bow drill):**
- Carve a fireboard with a notch
- Use a spindle and bow to create friction
- Catch ember in tinder bundle and blow gently

**3. Easier alternatives:**
- Flint/steel if available
- Magnifying glass or eyeglasses in sunlight
- Battery + steel wool

**Key:** Have everything ready before starting. Tinder must be completely dry.""",
    ),
)


def format_few_shot_examples(examples: Iterable[FewShotExample] = FEW_SHOT_EXAMPLES) -> str:
    return "\n\n---\n\n".join(f"User: {ex.user}\n\nAssistant: {ex.assistant}" for ex in examples)


def format_knowledge_for_prompt(entries: Sequence[KnowledgeEntry]) -> str:
    """Format entries as a delimited knowledge block ("" for no entries)."""
    if not entries:
        return ""

    formatted = "\n\n".join(f"### {entry.title}\n{entry.content}" for entry in entries)
    return f"\n---\n{KNOWLEDGE_HEADER}:\n{formatted}\n---\n"


def format_device_context(context: DeviceContext) -> str:
    """Render the device context block that precedes the persona prompt."""
    location = context.location
    if location.latitude is not None and location.longitude is not None:
        location_str = f"{location.latitude:.4f}°, {location.longitude:.4f}°"
    else:
        location_str = "Unknown"

    elevation_str = (
        f"{round(location.elevation_m)}m" if location.elevation_m is not None else "Unknown"
    )

    battery = context.device.battery_percent
    if battery is not None:
        battery_str = f"{battery}%{' (charging)' if context.device.is_charging else ''}"
    else:
        battery_str = "Unknown"

    emergency = context.user_state.emergency_mode
    emergency_str = f"\n- EMERGENCY MODE: {emergency.upper()}" if emergency else ""

    low_battery = (
        "- Battery is low. Keep responses concise to help preserve battery.\n"
        if battery is not None and battery < LOW_BATTERY_PERCENT
        else ""
    )

    return (
        "CURRENT DEVICE CONTEXT:\n"
        f"- Location: {location_str}\n"
        f"- Elevation: {elevation_str}\n"
        f"- Time: {context.time.local_time} {context.time.timezone}\n"
        f"- Battery: {battery_str}\n"
        f"- Network: {'OFFLINE' if context.network.is_offline else 'Online'}{emergency_str}\n"
        "\n"
        "Use this context to provide location-aware, time-appropriate advice.\n"
        f"{low_battery}\n"
    )


def build_system_prompt(
    base_prompt: str = SURVIVAL_SYSTEM_PROMPT,
    context: DeviceContext | None = None,
    knowledge_block: str | None = None,
) -> str:
    """Combine device context, persona prompt, and retrieved knowledge.

    Args:
        base_prompt: Persona/instruction prompt
        context: Optional device context, placed before the base prompt
        knowledge_block: Optional formatted knowledge, appended after it

    Returns:
        Complete system prompt
    """
    prompt = base_prompt
    if context is not None:
        prompt = format_device_context(context) + prompt
    if knowledge_block:
        prompt = prompt + "\n" + knowledge_block
    return prompt


def format_tool_result_for_messages(tool_args: dict[str, Any], result: str) -> str:
    """Wrap a knowledge-tool result for injection as a synthetic user message."""
    query = tool_args.get("query")
    query_str = f" (query: {query})" if query else ""
    return f'[Knowledge Retrieved for "{tool_args.get("topic") or ""}"{query_str}]\n{result}'


class PromptComposer:
    """Builds engine-ready message lists around a fixed persona prompt."""

    def __init__(
        self,
        base_prompt: str = SURVIVAL_SYSTEM_PROMPT,
        include_few_shot: bool = False,
        supports_vision: bool = False,
    ):
        """Initialize composer.

        Args:
            base_prompt: Persona/instruction prompt
            include_few_shot: Append few-shot examples to the persona prompt
            supports_vision: Forward message images to the engine
        """
        self.base_prompt = base_prompt
        if include_few_shot:
            self.base_prompt = (
                f"{base_prompt}\n\nExample responses:\n\n{format_few_shot_examples()}"
            )
        self.supports_vision = supports_vision

    def build_system_prompt(
        self, context: DeviceContext | None = None, knowledge_block: str | None = None
    ) -> str:
        return build_system_prompt(self.base_prompt, context, knowledge_block)

    def format_messages(
        self,
        history: Sequence[ChatMessage],
        context: DeviceContext | None = None,
        knowledge_block: str | None = None,
    ) -> List[dict[str, Any]]:
        """System message followed by the conversation history.

        Args:
            history: Conversation messages, oldest first
            context: Optional device context
            knowledge_block: Optional formatted knowledge

        Returns:
            List of {role, content, images?} dicts
        """
        messages: List[dict[str, Any]] = [
            {"role": "system", "content": self.build_system_prompt(context, knowledge_block)}
        ]
        for message in history:
            if message.role == "system":
                continue
            formatted: dict[str, Any] = {"role": message.role, "content": message.content}
            if message.images and self.supports_vision:
                formatted["images"] = list(message.images)
            messages.append(formatted)
        return messages
