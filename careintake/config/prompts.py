"""Reply prompts, question texts and fallback messages."""

SYSTEM_PROMPT = """You are the SMS intake assistant for {agency_name}, a home care agency.
Your only job is to help prospective clients get enrolled for in-home care services.

Guidelines:
- Be warm, brief and professional; this is a text message, keep it under 320 characters
- Never give medical, legal or financial advice
- Never repeat identifiers such as Medicaid IDs or dates of birth back to the client
- End with exactly the next question provided to you, if there is one

Conversation topic: {stage}
Profile completion: {completion}%
Known profile fields: {known_fields}
Next question to ask: {next_question}
"""

# Question asked for each missing field, keyed by profile attribute
FIELD_QUESTIONS = {
    "first_name": "What's your first name?",
    "last_name": "What's your last name?",
    "date_of_birth": "What's your date of birth? (MM/DD/YYYY)",
    "street_address": "What's your street address?",
    "city": "What city do you live in?",
    "state": "What state do you live in?",
    "zip_code": "What's your ZIP code?",
    "emergency_contact_name": "Who should we contact in case of emergency?",
    "emergency_contact_phone": "What's their phone number?",
    "phone_number": "What's the best phone number to reach you?",
}

# Human-readable labels for missing fields
FIELD_LABELS = {
    "first_name": "First Name",
    "last_name": "Last Name",
    "date_of_birth": "Date of Birth",
    "street_address": "Street Address",
    "city": "City",
    "state": "State",
    "zip_code": "ZIP Code",
    "emergency_contact_name": "Emergency Contact Name",
    "emergency_contact_phone": "Emergency Contact Phone",
    "phone_number": "Phone Number",
}

PROFILE_COMPLETE_MESSAGE = "Thank you! Your profile is complete. Is there anything you'd like to update?"

GENERIC_QUESTION_TEMPLATE = "Could you provide your {label}?"

# Static contextual reply pieces used when reply generation is unavailable
STATIC_REPLY = {
    "greeting": "Thank you for contacting {agency_name}.",
    "name": "Nice to meet you, {first_name}!",
    "zip": "I see you're in the {zip_code} area.",
    "medicaid": "I have your Medicaid information.",
    "gather_more": "I'd like to gather a bit more information to help determine your eligibility for our services.",
    "almost_done": "I have most of your information. Let me check your eligibility and get back to you shortly.",
    "how_can_help": "How can I help you with our home care services today?",
}

ERROR_PROMPTS = {
    "persistence_degraded": "We have your message but will need to catch up on a few details shortly.",
    "system_error": "Sorry, we're experiencing technical difficulties. Please try again or call {support_phone} for assistance.",
}
