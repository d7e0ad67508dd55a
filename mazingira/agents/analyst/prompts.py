from ...shared.models import CRIME_TYPES, SEVERITIES

ANALYST_PROMPT = """
You are the Mazingira AI Autonomous Agent.

TASK:
1. Analyze this satellite/drone imagery for environmental crimes in {region}.
2. Compare this imagery with the {history}
3. Detect "Change Signatures": Is the crime new, expanding, or has the area been secured?
4. Use Google Search to check for any specific protected status or recent environmental news in {region} to provide context.

OUTPUT:
Return JSON matching the schema. The reasoningChain MUST include a "changeDetection" field describing the temporal evolution.
"""

NO_HISTORY = "No previous reports for this region."

HISTORY_PREFIX = "HISTORICAL CONTEXT FOR THIS REGION: "

ANALYSIS_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "type": {"type": "STRING", "enum": list(CRIME_TYPES)},
        "severity": {"type": "STRING", "enum": list(SEVERITIES)},
        "description": {"type": "STRING"},
        "confidence": {"type": "NUMBER"},
        "reasoningChain": {
            "type": "OBJECT",
            "properties": {
                "hypothesis": {"type": "STRING"},
                "evidencePoints": {"type": "ARRAY", "items": {"type": "STRING"}},
                "alternatives": {"type": "ARRAY", "items": {"type": "STRING"}},
                "changeDetection": {
                    "type": "STRING",
                    "description": "Analysis of how this situation has changed over time.",
                },
            },
            "required": ["hypothesis", "evidencePoints", "alternatives", "changeDetection"],
        },
    },
    "required": ["type", "severity", "description", "confidence", "reasoningChain"],
}
