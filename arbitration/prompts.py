LEGAL_STATUTES = """
Contract Law § 101: Formation of Valid Contracts
Contract Law § 205: Time of Performance
Contract Law § 261: Impossibility of Performance
Contract Law § 310: Material Breach
Contract Law § 365: Substantial Performance
Tort Law § 402: Property Damage Liability
Tort Law § 501: Negligence Standards
Consumer Protection § 601: Unfair Business Practices
"""

FACTUAL_JUDGE_PROMPT = """
You are the Factual Judge. Your sole task is to analyze the following two transcripts from an arbitration case. Extract the key events and facts presented by both parties. Create a single, unified, and chronologically ordered timeline of events. For each event, note whether the parties agree or disagree.

Party A Statement: {transcript_a}

Party B Statement: {transcript_b}

Output ONLY a JSON array of objects, where each object has event_description (string), timestamp (string, if available), and agreement_status ('Agreed', 'Disputed', or 'Unilateral').
"""

LEGAL_JUDGE_PROMPT = """
You are the Legal Precedent Judge, an expert in small-claims contract law. Given the following JSON timeline of facts, analyze each event against the provided legal statutes. Annotate each fact with the relevant statute(s).

Legal Statutes:
{statutes}

Timeline: {timeline}

Output ONLY a JSON object that maps each event_description from the input to an array of applicable legal_citations.
"""

VERDICT_JUDGE_PROMPT = """
You are the Verdict Drafting Judge. Synthesize the provided information into a formal verdict document. The document must be in Markdown format and contain three sections:

1. Findings of Fact: Summarize the unified timeline
2. Conclusions of Law: Explain how the legal rules apply to the facts
3. Remedies & Next Steps: Suggest a resolution based on your findings

Case Title: {title}
Dispute Amount: ${amount}

Timeline: {timeline}
Legal Analysis: {legal_analysis}
Procedural Review: {procedural_review}

Be clear, impartial, and base your entire decision only on the data provided.
"""

# Gemini variant: asks for a winner in `finalDecision`.
DEBATE_ANALYSIS_PROMPT = """
Context of the debate: {context}

Analyze the following debate between Party A and Party B. You MUST respond with a valid JSON object containing:
1. A brief summary of the debate (focus on the overall flow and main topics discussed)
2. Key points made by each party (extract 2-3 main arguments or positions from each speaker)
3. Points of agreement (list specific areas where both parties aligned)
4. Points of disagreement (list specific areas where parties had different views)
5. A conclusion (provide a final assessment of the debate outcome and remaining open questions)
6. A final decision (clearly state who won the debate and provide a detailed explanation for the decision)

Party A's statements:
{party_a}

Party B's statements:
{party_b}

IMPORTANT: Your response MUST be a valid JSON object with the following exact structure:
{{
  "summary": "Brief summary of the debate flow and main topics",
  "keyPoints": {{
    "partyA": ["specific point 1", "specific point 2", "specific point 3"],
    "partyB": ["specific point 1", "specific point 2", "specific point 3"]
  }},
  "agreementPoints": ["specific agreement 1", "specific agreement 2"],
  "disagreementPoints": ["specific disagreement 1", "specific disagreement 2"],
  "conclusion": "Final assessment of debate outcome and remaining questions",
  "finalDecision": "Clear statement of who won and detailed explanation for the decision"
}}

Do not include any text before or after the JSON object. The response must be parseable JSON.
"""

DEBATE_ANALYSIS_PROMPT_COHERE = """
Context of the debate: {context}

Analyze the following debate between Party A and Party B. Provide a structured analysis including:
1. A brief summary of the debate
2. Key points made by each party
3. Points of agreement
4. Points of disagreement
5. A conclusion

Party A's statements:
{party_a}

Party B's statements:
{party_b}

Please format your response as a JSON object with the following structure:
{{
  "summary": "Brief summary of the debate",
  "keyPoints": {{
    "partyA": ["point 1", "point 2", ...],
    "partyB": ["point 1", "point 2", ...]
  }},
  "agreementPoints": ["point 1", "point 2", ...],
  "disagreementPoints": ["point 1", "point 2", ...],
  "conclusion": "Overall conclusion of the debate"
}}
"""

DEBATE_RESPONSE_PROMPT = """You're in a debate about {context}. Here's what was said:

{party_a}

{party_b}

Respond like a normal person having a conversation and friendly also ask follow up questions based on the previous response."""
