# pluginforge/core/prompts.py
"""
Prompts used by the generation pipeline.

Goals:
- Force JSON-only outputs the backend can parse.
- Make long/complex requests produce real code files, not a lone README.
- Give the fix/update agents the current file set so they only return changed files.
"""

import json
from typing import Any, Dict, List

from pluginforge.utils.config import COMPLEX_PROMPT_THRESHOLD

SYSTEM_PROMPT = """You are an expert Minecraft plugin developer. Generate COMPLETE, PRODUCTION-READY code that compiles successfully.

RESPONSE FORMAT (JSON only, no markdown):
{
 "project_name": "DescriptiveName",
 "language": "java|kotlin|skript|datapack",
 "platform": "paper|spigot|velocity|bukkit|skript|datapack|fabric|forge",
 "mc_version": "version",
 "files": [{ "path": "full/path/to/file.java", "content": "complete file content" }],
 "scripts": ["./gradlew build"],
 "explain_steps": [{ "title": "Step", "description": "What this does", "estimated_time": "5s" }],
 "metadata": { "dependencies": ["dep1"], "notes": "Brief implementation notes" }
}

If the request is not a plugin description at all, return {"error": "unclear_request", "message": "<what is missing>"}.

STRICT RULES:
1. Implement EXACTLY what the user asks for
2. Include ALL required files: plugin.yml, main class, build.gradle/build.gradle.kts, config.yml
3. Use APIs matching the specified Minecraft version
4. Add error handling, logging and null checks
5. Include command tab completion and permission nodes
6. Write concise but complete code, no placeholder comments

CODE STRUCTURE:
- Paper/Spigot/Bukkit: main class extends JavaPlugin, event handlers, config management
- Skript: a single .sk file with organized sections
- Datapacks: complete data folder structure with functions, predicates, tags
- Fabric/Forge: main mod class, fabric.mod.json/mods.toml, registration

ACCURACY REQUIREMENTS:
- Match the exact feature requests, no extras
- Use correct package names and class structure
- Include only dependencies that are actually needed
- Write compilable code with proper imports

For large or detailed requests you MUST still generate every code file. Never answer with only a README.md."""

COMPLEX_REQUEST_BLOCK = """
IMPORTANT: This is a COMPLEX/DETAILED request.
You MUST generate ALL necessary code files including:
- Main plugin class with full implementation
- All required configuration files (plugin.yml, config.yml)
- Build files (build.gradle/build.gradle.kts)
- Event handlers, commands, and utilities as described
- Do NOT just create a README.md file
"""


def is_complex_request(description: str) -> bool:
    return len(description) > COMPLEX_PROMPT_THRESHOLD


def build_system_prompt() -> str:
    return SYSTEM_PROMPT


def build_user_prompt(description: str, plugin_type: str, mc_version: str) -> str:
    """
    Prompt body for the main generation step. Combined with build_system_prompt above.
    """
    complex_block = COMPLEX_REQUEST_BLOCK if is_complex_request(description) else ""
    return (
        f"Create a {plugin_type} plugin for Minecraft {mc_version}:\n\n"
        f"{description}\n"
        f"{complex_block}\n"
        "Requirements:\n"
        "- Include ALL necessary files (plugin.yml, main class, build file, config)\n"
        f"- Use {mc_version} APIs\n"
        "- Implement EXACTLY what was requested, no extra features\n"
        "- Write production-ready, compilable code\n"
        "- Add error handling and logging\n\n"
        "Return ONLY valid JSON (no markdown formatting)."
    )


def _files_manifest(files: List[Dict[str, Any]]) -> str:
    return json.dumps([{"path": f.get("path"), "content": f.get("content", "")} for f in files], ensure_ascii=False)


def build_fix_prompt(build_log: str, files: List[Dict[str, Any]]) -> str:
    """
    Auto-fix prompt: the build console output plus every file. Only existing files may be patched.
    """
    return (
        "You are an expert Minecraft plugin developer fixing a generated project.\n"
        "OUTPUT RULES:\n"
        " - Return EXACTLY one valid JSON object and nothing else.\n"
        " - Shape: {\"patches\": [{\"path\": \"existing/path\", \"new_content\": \"full corrected file\"}], \"explanation\": \"...\"}\n"
        " - Only patch files that already exist; use their exact paths. Never invent new files.\n"
        " - Return the FULL corrected content for each patched file, not a diff.\n"
        " - If nothing needs fixing return {\"patches\": [], \"explanation\": \"...\"}.\n\n"
        f"Build console:\n{build_log}\n\n"
        f"Project files:\n{_files_manifest(files)}\n"
    )


def build_update_prompt(prompt: str,
                        files: List[Dict[str, Any]],
                        platform: str,
                        mc_version: str) -> str:
    """
    AI update prompt: apply a free-text instruction to the existing project.
    """
    return (
        f"You are an expert Minecraft {platform} plugin developer targeting Minecraft {mc_version}.\n"
        "Modify the existing project to satisfy the user's request.\n"
        "OUTPUT RULES:\n"
        " - Return EXACTLY one valid JSON object and nothing else.\n"
        " - Shape: {\"updates\": [{\"path\": \"relative/path\", \"content\": \"full file content\", \"description\": \"what changed\"}], \"summary\": \"...\"}\n"
        " - Return only files you ADD or CHANGE, each with its full content.\n"
        " - Keep changes minimal; do not rename or reformat unrelated files.\n\n"
        f"User request:\n{prompt}\n\n"
        f"Existing files:\n{_files_manifest(files)}\n"
    )
