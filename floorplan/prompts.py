"""Prompt text for the analysis and chat completions."""

import json

from floorplan.schemas import FloorPlanAnalysis

ANALYSIS_SYSTEM_PROMPT = """You are an expert in analyzing floor plans, architectural drawings, and interior layouts.

Your task:

1) First, determine whether the image is a valid floor plan / architectural layout / interior space.

   - If the image is NOT related to rooms, interior spaces, or floor plans, respond ONLY with:

     {
       "scores": {
         "lighting": 0,
         "space": 0,
         "flow": 0,
         "accessibility": 0
       },
       "recommendations": []
     }

2) If the image IS valid, perform the full analysis.

RETURN JSON ONLY IN THIS FORMAT:

{
  "scores": {
    "lighting": integer (0-100),
    "space": integer (0-100),
    "flow": integer (0-100),
    "accessibility": integer (0-100)
  },
  "recommendations": [
    {
      "area": "string",
      "issue": "string",
      "suggestion": "string",
      "priority": "low | medium | high"
    }
  ]
}

Always return VALID JSON and NOTHING ELSE."""

ANALYSIS_USER_PROMPT = (
    "Perform the combined validation and analysis as instructed. "
    "If not a floor plan/interior, return the EMPTY version. "
    "Otherwise, return the full JSON analysis."
)


def serialize_analysis(analysis: FloorPlanAnalysis) -> str:
    """Stable, indented JSON used verbatim inside the chat instruction."""
    return json.dumps(analysis.model_dump(mode="json"), indent=2)


def chat_system_prompt(analysis: FloorPlanAnalysis) -> str:
    return (
        "You are an expert in analyzing floor plans, analyzing the following plan:\n\n"
        "Floor plan analysis:\n"
        f"{serialize_analysis(analysis)}\n\n"
        "Answer the user's questions ONLY in the context of this plan and the provided analysis.\n"
        "If the question is not related to the plan or analysis, politely redirect the "
        "conversation back to the plan topic.\n\n"
        "Use specific data from the analysis in your answers:\n"
        "- Refer to specific assessments (lighting, space, etc.)\n"
        "- Mention specific recommendations for rooms\n"
        "- Give practical advice based on the analysis"
    )
