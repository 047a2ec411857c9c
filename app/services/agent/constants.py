"""Pattern tables and fixed lines for the conversation flow.

Tables are evaluated top to bottom; the first matching entry decides.
"""
import re

# (category, pattern) pairs that mark a call as spam
SPAM_PATTERNS = [
    ("survey", re.compile(r"\b(survey|poll|questionnaire)\b", re.IGNORECASE)),
    ("telemarketing", re.compile(r"\b(telemarketing|marketing|promotion)\b", re.IGNORECASE)),
    ("robocall", re.compile(r"\b(robocall|automated|recording)\b", re.IGNORECASE)),
    ("warranty", re.compile(r"\b(warranty|extended warranty)\b", re.IGNORECASE)),
    ("credit", re.compile(r"\b(credit card|debt|loan)\b", re.IGNORECASE)),
    ("insurance", re.compile(r"\b(insurance|medicare|health plan)\b", re.IGNORECASE)),
    ("energy", re.compile(r"\b(solar|energy|utility)\b", re.IGNORECASE)),
    ("timeshare", re.compile(r"\b(vacation|timeshare|cruise)\b", re.IGNORECASE)),
    ("press_to", re.compile(r"press \d+ to", re.IGNORECASE)),
    ("not_a_sales_call", re.compile(r"this is not a sales call", re.IGNORECASE)),
    ("do_not_hang_up", re.compile(r"do not hang up", re.IGNORECASE)),
    ("final_notice", re.compile(r"final notice", re.IGNORECASE)),
]

# (category, pattern) pairs that route the caller to a human
TRANSFER_PATTERNS = [
    (
        "human_request",
        re.compile(
            r"\b(speak to|talk to|connect me|transfer me)\b.*"
            r"\b(human|person|representative|agent|manager|someone)\b",
            re.IGNORECASE,
        ),
    ),
    ("pricing", re.compile(r"\b(pricing|price|cost|quote|estimate)\b", re.IGNORECASE)),
    ("tech_support", re.compile(r"\b(technical support|tech support|help with)\b", re.IGNORECASE)),
    ("complaint", re.compile(r"\b(complaint|problem|issue|trouble)\b", re.IGNORECASE)),
    ("billing", re.compile(r"\b(billing|payment|invoice|account)\b", re.IGNORECASE)),
    ("cancellation", re.compile(r"\b(cancel|refund|return)\b", re.IGNORECASE)),
]

# Caller closing phrases that end the call normally
COMPLETION_PATTERNS = [
    ("goodbye", re.compile(r"\b(goodbye|good bye|bye bye|bye)\b", re.IGNORECASE)),
    (
        "done",
        re.compile(
            r"\b(that's all|that is all|that's it|nothing else|no thanks that's all)\b",
            re.IGNORECASE,
        ),
    ),
]

# Extraction patterns, tried in order per field
NAME_PATTERNS = [
    re.compile(r"\bmy name is ([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"\bthis is ([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"\bI'm ([A-Za-z\s]+)", re.IGNORECASE),
    re.compile(r"\bI am ([A-Za-z\s]+)", re.IGNORECASE),
]

COMPANY_SUFFIX = r"(?:Inc|LLC|Corp|Company|Co|Ltd)\b\.?"

# The suffix must be its own word: "Acme Corp", "Acme, Inc."
COMPANY_NAME = rf"((?:[A-Za-z&.,]+\s+)+?{COMPANY_SUFFIX})"

COMPANY_PATTERNS = [
    re.compile(rf"\bfrom {COMPANY_NAME}", re.IGNORECASE),
    re.compile(rf"\bwith {COMPANY_NAME}", re.IGNORECASE),
    re.compile(rf"\bat {COMPANY_NAME}", re.IGNORECASE),
    re.compile(r"\bwork for ([A-Za-z\s&.,]+)", re.IGNORECASE),
    re.compile(r"\brepresent ([A-Za-z\s&.,]+)", re.IGNORECASE),
]

PHONE_PATTERNS = [
    re.compile(r"(\(\d{3}\)\s?\d{3}[-.\s]?\d{4})"),
    re.compile(r"(\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b)"),
]

REASON_PATTERNS = [
    re.compile(r"\bcalling about ([^.!?]+)", re.IGNORECASE),
    re.compile(r"\binterested in ([^.!?]+)", re.IGNORECASE),
    re.compile(r"\bneed help with ([^.!?]+)", re.IGNORECASE),
    re.compile(r"\blooking for ([^.!?]+)", re.IGNORECASE),
    re.compile(r"\bwant to ([^.!?]+)", re.IGNORECASE),
]

# Words that end a captured name ("this is John Smith from Acme Corp")
NAME_STOP_WORDS = {
    "from", "with", "at", "and", "calling", "here", "of", "i", "im", "my",
    "the", "a", "an", "about", "for", "on", "in", "to", "just", "again",
}

# Captures that start with one of these are not names ("I'm interested in ...")
NOT_A_NAME = {
    "interested", "calling", "looking", "trying", "wondering", "having",
    "not", "just", "sorry", "good", "fine", "doing", "glad", "here",
    "still", "really", "very", "so", "sure", "okay", "ok", "well", "going",
    "a", "an", "the", "your", "my", "about", "from", "with", "in", "on",
    "for", "regarding", "it", "is", "that",
}

MAX_NAME_WORDS = 3

# Company captures are cut at these words ("work for Initech and we need ...")
COMPANY_STOP_WORDS = {"and", "but", "so", "because", "where", "who", "which"}

BUSINESS_KEYWORDS = [
    "business",
    "company",
    "service",
    "solution",
    "enterprise",
    "commercial",
    "corporate",
    "organization",
    "firm",
]

# Lead score weights
LEAD_SCORE_NAME = 25
LEAD_SCORE_COMPANY = 25
LEAD_SCORE_PHONE = 20
LEAD_SCORE_REASON = 30
LEAD_SCORE_MAX = 100

# Fixed lines
GREETING = "Hello! Thank you for calling. How can I help you today?"
SPAM_CLOSING = "Thank you for calling. I'll direct you to our voicemail system. Have a great day!"
TRANSFER_HOLD = (
    "I'd be happy to connect you with one of our specialists. "
    "Please hold while I transfer your call."
)
COMPLETION_CLOSING = "Thank you for calling. Have a great day!"
ENGINE_FALLBACK = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Let me connect you with one of our team members who can assist you better."
)
ASK_NAME = "Thank you for calling! I'd be happy to help you today. May I start by getting your name?"
ASK_REASON = "Thank you, {name}. What can I help you with today?"
ASK_COMPANY = "And what company are you with?"
QUALIFIED_HANDOFF = (
    "Thank you for that information, {name}. I have all the details I need. "
    "Let me connect you with one of our specialists who can help you with {reason}. "
    "Please hold for just a moment."
)
CLARIFY = (
    "I understand. Let me see how I can best assist you with that. "
    "Can you tell me a bit more about what you're looking for?"
)
PERSONALIZED_FOLLOW_UP = "{answer} Is there anything else I can help you with today, {name}?"

# Orchestrator lines
PROCESSING_APOLOGY = (
    "I apologize, but I'm having trouble processing your request. "
    "Let me connect you with one of our team members."
)
NO_TRANSFER_APOLOGY = (
    "I apologize, but I'm unable to transfer your call at this time. "
    "Please call back later or leave a voicemail."
)
TRANSFER_FAILED_APOLOGY = (
    "I'm sorry, but I'm unable to complete the transfer. Let me take a message for you."
)
