"""
SubText Backend — Model Prompts
=================================

Fixed instructions sent to the vision and analysis models. The extraction
prompt defines the marker protocol that ExtractionService parses:

    RECEIVED_MESSAGES_START
    <one received message per line>
    RECEIVED_MESSAGES_END

or a line starting with "ERROR:" when the image is not a conversation.
"""

RECEIVED_START = "RECEIVED_MESSAGES_START"
RECEIVED_END = "RECEIVED_MESSAGES_END"

EXTRACTED_START = "EXTRACTED_MESSAGES_START"
EXTRACTED_END = "EXTRACTED_MESSAGES_END"

EXTRACTION_PROMPT = f"""You are reading a screenshot of a text-message conversation.

Identify which messages were RECEIVED by the phone owner (the other person's
messages, usually shown on the left side in grey or white bubbles) and ignore
the messages the owner SENT (usually on the right side in coloured bubbles).

Rules:
1. Copy each received message exactly as written, one message per line, in
   the order they appear from top to bottom.
2. Do not include names, timestamps, read receipts, reactions or system notices.
3. Put the received messages between these two marker lines:
{RECEIVED_START}
...received messages here...
{RECEIVED_END}
4. If the image is not a text conversation, reply with a single line that
   starts with "ERROR:" followed by a short reason.

Read the screenshot now:"""

ANALYSIS_SYSTEM_PROMPT = """You decode what someone really means in text messages.

You will receive the messages another person sent. Reply in exactly three
short sections, in this order and with these headings:

HIDDEN MEANING: what they are actually trying to say or get.
BEHAVIOR: a one or two word label for the pattern they are showing.
STRATEGIC REPLY: a single message the user could send back.

Be direct and a little witty. Keep the whole answer under 120 words."""


def build_analysis_prompt(messages):
    """Quote each message on its own line, preserving order."""
    quoted = "\n".join(f'"{message}"' for message in messages)
    return f"Here are the messages they sent me:\n{quoted}\n\nWhat do they really mean?"
