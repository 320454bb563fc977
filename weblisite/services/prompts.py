"""
Prompt builders for generation and error-fix runs

The output format requested here is the one ``StreamDemuxer`` parses: a
``File: <path>`` line, then a fenced block with the full file content.
"""

from __future__ import annotations

from typing import Any

DEFAULT_PREFERENCES = (
    "USER PREFERENCES: Use React with modern JavaScript, Tailwind CSS, and beginner-friendly code comments."
)

SYSTEM_PROMPT = """You are a senior front-end engineer who builds complete, runnable React
applications (Vite, React 18, React Router 6, Tailwind CSS).

Output every file you create or change in exactly this format and nothing else
between files:

File: src/components/Example.jsx
```jsx
...complete file content...
```

Rules for the output format:
- One "File:" line per file, with a project-relative path, immediately followed by the fence.
- Always emit the complete file, never a fragment or a diff.
- Do not put a language name on the first line inside the fence.
"""

CODE_REQUIREMENTS = """MANDATORY TECHNICAL REQUIREMENTS:
1. Components
   - Declare components as "function ComponentName() { ... }" and finish each
     component file with "export default ComponentName;".
   - Every component returns a single root element.
2. Syntax
   - Close every JSX element (<Tag></Tag> or <Tag />).
   - Keep brackets, parentheses and braces balanced in every file.
   - Use double quotes for string literals that contain apostrophes.
   - Import everything you use, with correct relative paths.
3. Project
   - Include package.json with every dependency the code imports.
   - Keep src/main.jsx as the entry point that mounts <App /> inside
     <BrowserRouter> with ReactDOM.createRoot(...).render(...).
"""


def _as_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v]
    if value:
        return [str(value)]
    return []


def build_preference_instructions(preferences: dict[str, Any] | None) -> str:
    """Turn a caller preference profile into prompt instructions"""
    if not preferences:
        return DEFAULT_PREFERENCES

    profile = preferences.get("profile", preferences)
    code_gen = preferences.get("code_generation", preferences)
    lines = ["USER PREFERENCES:"]

    languages = _as_list(profile.get("preferred_languages"))
    if languages:
        lines.append(f"- Primary languages: {', '.join(languages)}")
        if "TypeScript" in languages:
            lines.append("- Use TypeScript with interfaces for props and state")
        elif "JavaScript" in languages:
            lines.append("- Use modern JavaScript (ES2020+)")

    if code_gen.get("default_framework"):
        lines.append(f"- Preferred framework: {code_gen['default_framework']}")
    if code_gen.get("preferred_styling"):
        lines.append(f"- Styling: {code_gen['preferred_styling']}")

    level = profile.get("experience_level")
    if level == "beginner":
        lines.append("- Audience is a beginner: explain React concepts in comments, prefer simple patterns")
    elif level == "intermediate":
        lines.append("- Audience is intermediate: comment non-obvious logic, modern React patterns are fine")
    elif level == "advanced":
        lines.append("- Audience is advanced: few comments, use performance-minded patterns where they help")

    verbosity = code_gen.get("comment_verbosity")
    if verbosity == "verbose":
        lines.append("- Comment every major block and function")
    elif verbosity == "medium":
        lines.append("- Comment complex logic and key functions")
    elif verbosity == "minimal":
        lines.append("- Comment only what is not obvious")

    if code_gen.get("include_error_handling"):
        lines.append("- Handle errors with try/catch, user-facing messages and loading states")
    if code_gen.get("code_style") == "modern":
        lines.append("- Use hooks and function components throughout")
    if profile.get("interests"):
        lines.append(f"- The user is interested in {profile['interests']}; use fitting examples")

    lines.append("")
    lines.append("Follow these preferences without breaking the mandatory technical requirements below.")
    return "\n".join(lines)


def build_generation_prompt(prompt: str, preferences: dict[str, Any] | None = None) -> str:
    return (
        f"Build the following web application:\n\n{prompt.strip()}\n\n"
        f"{build_preference_instructions(preferences)}\n\n"
        f"{CODE_REQUIREMENTS}"
    )


def build_error_fix_prompt(
    error_message: str,
    candidate_path: str | None,
    context: str,
    preferences: dict[str, Any] | None = None,
) -> str:
    location = f"FILE MOST LIKELY AT FAULT ({candidate_path}):" if candidate_path else "ERROR LOCATION UNKNOWN, PROJECT FILES:"
    parts = [
        "The application below fails with an error. Find the root cause and fix it.",
        "",
        "ERROR MESSAGE:",
        error_message.strip(),
        "",
        location,
        context.strip() or "(no files available)",
        "",
        "Explain the cause in one or two sentences, then output the complete fixed version of every file you change.",
    ]
    if preferences:
        parts += ["", build_preference_instructions(preferences)]
    parts += ["", CODE_REQUIREMENTS]
    return "\n".join(parts)
