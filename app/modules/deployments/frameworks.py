"""
Framework detection and sub-path configuration for cloned templates.

Templates are served from https://<user>.github.io/<repo>/, so every build
tool has to be told about the /<repo>/ prefix. Detection walks a fixed
priority list of marker files because real templates often carry more than
one (a Vite project usually ships a root index.html too); the first match
is the dominant toolchain.

configure() only ever replaces the directives it owns, so running it twice
leaves the project exactly as running it once.
"""
import json
import re
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from app.modules.deployments.errors import ProjectConfigurationError, UnsupportedProjectError

logger = logging.getLogger(__name__)

NEXT_CONFIG_FILES = ("next.config.js", "next.config.mjs", "next.config.cjs", "next.config.ts")
VITE_CONFIG_FILES = (
    "vite.config.js", "vite.config.ts", "vite.config.mjs",
    "vite.config.mts", "vite.config.cjs", "vite.config.cts",
)
ANGULAR_MARKER = "angular.json"
PACKAGE_MANIFEST = "package.json"
HTML_ENTRY = "index.html"
CRA_TOOLCHAIN = "react-scripts"

NPM_BUILD = ["npm", "run", "build"]


class Framework(str, Enum):
    NEXTJS = "nextjs"
    VITE = "vite"
    ANGULAR = "angular"
    REACT_CRA = "react-cra"
    STATIC_HTML = "static-html"


# Catalog tech-stack labels and the frameworks they are compatible with
TECH_STACK_HINTS = {
    "Next.js": {Framework.NEXTJS},
    "Vite": {Framework.VITE},
    "React + Vite": {Framework.VITE},
    "React": {Framework.REACT_CRA, Framework.VITE, Framework.NEXTJS},
    "HTML": {Framework.STATIC_HTML},
    "Angular": {Framework.ANGULAR},
}


@dataclass(frozen=True)
class FrameworkProfile:
    framework: Framework
    build_command: Optional[List[str]]
    output_dir: str
    config_file: Optional[str] = None

    @property
    def needs_build(self) -> bool:
        return self.build_command is not None


def base_path(repo_name: str) -> str:
    return f"/{repo_name}/"


def _first_existing(root: Path, names) -> Optional[str]:
    for name in names:
        if (root / name).is_file():
            return name
    return None


def read_package_json(root: Path) -> Optional[dict]:
    manifest = root / PACKAGE_MANIFEST
    if not manifest.is_file():
        return None
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        raise ProjectConfigurationError(f"Invalid package.json: {e}")
    if not isinstance(data, dict):
        raise ProjectConfigurationError("Invalid package.json: expected a JSON object")
    return data


def _depends_on(package: dict, dependency: str) -> bool:
    for section in ("dependencies", "devDependencies"):
        deps = package.get(section)
        if isinstance(deps, dict) and dependency in deps:
            return True
    return False


def _angular_output_dir(root: Path, package: Optional[dict]) -> str:
    try:
        workspace = json.loads((root / ANGULAR_MARKER).read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        raise ProjectConfigurationError(f"Invalid angular.json: {e}")

    projects = workspace.get("projects") or {}
    if isinstance(projects, dict) and projects:
        name = workspace.get("defaultProject") or next(iter(projects))
        project = projects.get(name) or {}
        options = (((project.get("architect") or {}).get("build") or {}).get("options") or {})
        output_path = options.get("outputPath")
        if isinstance(output_path, dict):
            output_path = output_path.get("base")
        if isinstance(output_path, str) and output_path.strip():
            return output_path.strip().rstrip("/")

    package_name = (package or {}).get("name")
    if not package_name:
        raise ProjectConfigurationError("Cannot determine Angular output directory: no outputPath and no package name")
    return f"dist/{package_name}"


def detect(project_root: Path, repo_name: str) -> FrameworkProfile:
    """
    Classify the project at project_root.

    Raises:
        UnsupportedProjectError: No known marker file present
        ProjectConfigurationError: A marker file exists but cannot be read
    """
    root = Path(project_root)

    next_config = _first_existing(root, NEXT_CONFIG_FILES)
    if next_config:
        return FrameworkProfile(Framework.NEXTJS, list(NPM_BUILD), "out", next_config)

    vite_config = _first_existing(root, VITE_CONFIG_FILES)
    if vite_config:
        return FrameworkProfile(Framework.VITE, list(NPM_BUILD), "dist", vite_config)

    package = read_package_json(root)

    if (root / ANGULAR_MARKER).is_file():
        return FrameworkProfile(
            Framework.ANGULAR,
            NPM_BUILD + ["--", f"--base-href={base_path(repo_name)}"],
            _angular_output_dir(root, package),
            ANGULAR_MARKER,
        )

    if package is not None and _depends_on(package, CRA_TOOLCHAIN):
        return FrameworkProfile(Framework.REACT_CRA, list(NPM_BUILD), "build", PACKAGE_MANIFEST)

    if (root / HTML_ENTRY).is_file():
        return FrameworkProfile(Framework.STATIC_HTML, None, ".")

    raise UnsupportedProjectError("Unsupported project type")


def matches_tech_stack(profile: FrameworkProfile, tech_stack: Optional[str]) -> bool:
    if not tech_stack or tech_stack not in TECH_STACK_HINTS:
        return True
    return profile.framework in TECH_STACK_HINTS[tech_stack]


# ---------------------------------------------------------------------------
# Config rewriting
# ---------------------------------------------------------------------------

# Opening brace of the exported config object, e.g. `defineConfig({`,
# `defineConfig(({ mode }) => ({`, the `return {` of a block-bodied
# `defineConfig(({ mode }) => { ... })`, `export default {`, `module.exports = {`,
# `const nextConfig = {` / `const nextConfig: NextConfig = {`
_VITE_ANCHOR = re.compile(
    r"defineConfig\(\s*(?:(?:async\s*)?\([^)]*\)\s*=>\s*\(\s*)?\{"
    r"|defineConfig\(\s*(?:async\s*)?\([^)]*\)\s*=>\s*\{[\s\S]*?\breturn\s*\(?\s*\{"
    r"|export\s+default\s*\{"
    r"|module\.exports\s*=\s*\{"
)
_NEXT_ANCHOR = re.compile(
    r"(?:const|let|var)\s+nextConfig\s*(?::\s*[\w.]+\s*)?=\s*\{"
    r"|defineConfig\(\s*\{"
    r"|export\s+default\s*\{"
    r"|module\.exports\s*=\s*\{"
)
# `export default config` / `module.exports = withPlugin(config)`
_EXPORTED_NAME = re.compile(
    r"^[ \t]*(?:export\s+default|module\.exports\s*=)\s*(?:[\w$.]+\(\s*)?([A-Za-z_$][\w$]*)\s*\)?\s*;?[ \t]*$",
    re.MULTILINE,
)

# A `key: value,` directive whose value is a quoted string, a boolean or a
# bare expression up to the next comma/newline
_DIRECTIVE_VALUE = r"""\s*:\s*(?:'[^'\n]*'|"[^"\n]*"|`[^`\n]*`|[^,\n}]+)\s*,?[ \t]*"""


def _directive_pattern(key: str) -> re.Pattern:
    return re.compile(r"""(?<![\w$.'"])['"]?""" + re.escape(key) + r"""['"]?""" + _DIRECTIVE_VALUE)


def _remove_directive(text: str, key: str) -> str:
    pattern = _directive_pattern(key)
    # Drop whole lines that only held the directive, then any inline leftovers
    line_pattern = re.compile(r"^[ \t]*" + pattern.pattern + r"\r?\n", re.MULTILINE)
    text = line_pattern.sub("", text)
    return pattern.sub("", text)


def _bound_config_object(text: str) -> Optional[re.Match]:
    """Opening brace of the object assigned to the exported name, if the export is a bare identifier."""
    exported = _EXPORTED_NAME.search(text)
    if not exported:
        return None
    declaration = re.compile(
        r"(?:const|let|var)\s+" + re.escape(exported.group(1)) + r"\s*(?::\s*[\w.]+\s*)?=\s*\{"
    )
    return declaration.search(text)


def _insert_after_anchor(text: str, anchor: re.Pattern, lines: List[str], config_file: str) -> str:
    match = anchor.search(text) or _bound_config_object(text)
    if not match:
        raise ProjectConfigurationError(f"Could not locate the exported config object in {config_file}")
    # Indent like the line that follows the brace, defaulting to two spaces
    following = text[match.end():].lstrip("\r\n")
    indent_match = re.match(r"[ \t]+", following)
    indent = indent_match.group(0) if indent_match else "  "
    block = "".join(f"\n{indent}{line}" for line in lines)
    return text[:match.end()] + block + text[match.end():]


def configure_vite(root: Path, profile: FrameworkProfile, repo_name: str) -> None:
    config_path = root / profile.config_file
    text = config_path.read_text(encoding="utf-8")
    directive = f'base: "{base_path(repo_name)}",'
    first = _directive_pattern("base").search(text)
    if first:
        # Keep the first occurrence in place, drop any duplicates
        head, tail = text[:first.start()], text[first.end():]
        text = head + directive + _remove_directive(tail, "base")
    else:
        text = _insert_after_anchor(text, _VITE_ANCHOR, [directive], profile.config_file)
    config_path.write_text(text, encoding="utf-8")
    logger.info(f"Set Vite base to {base_path(repo_name)} in {profile.config_file}")


def configure_next(root: Path, profile: FrameworkProfile, repo_name: str) -> None:
    config_path = root / profile.config_file
    text = config_path.read_text(encoding="utf-8")
    for key in ("output", "basePath", "assetPrefix"):
        text = _remove_directive(text, key)
    directives = [
        'output: "export",',
        f'basePath: "/{repo_name}",',
        f'assetPrefix: "{base_path(repo_name)}",',
    ]
    if not re.search(r"(?<![\w$.])images\s*:", text):
        # next/image needs the optimizer server unless disabled for static export
        directives.append("images: { unoptimized: true },")
    text = _insert_after_anchor(text, _NEXT_ANCHOR, directives, profile.config_file)
    config_path.write_text(text, encoding="utf-8")
    logger.info(f"Enabled static export under /{repo_name} in {profile.config_file}")


def configure_cra(root: Path, repo_name: str, homepage_url: str) -> None:
    manifest = root / PACKAGE_MANIFEST
    package = read_package_json(root) or {}
    package["homepage"] = homepage_url
    manifest.write_text(json.dumps(package, indent=2) + "\n", encoding="utf-8")
    logger.info(f"Set package.json homepage to {homepage_url}")


def configure(project_root: Path, profile: FrameworkProfile, repo_name: str, username: str, pages_domain: str = "github.io") -> None:
    """Rewrite build configuration so the output works when served from /<repo_name>/."""
    root = Path(project_root)
    if profile.framework == Framework.NEXTJS:
        configure_next(root, profile, repo_name)
    elif profile.framework == Framework.VITE:
        configure_vite(root, profile, repo_name)
    elif profile.framework == Framework.REACT_CRA:
        configure_cra(root, repo_name, f"https://{username}.{pages_domain}{base_path(repo_name)}")
    # Angular takes its base href on the command line; static HTML needs nothing


def resolve_output_dir(project_root: Path, profile: FrameworkProfile) -> Path:
    """Where the built site actually is. Angular 17+ nests it under browser/."""
    output = Path(project_root) / profile.output_dir
    if profile.framework == Framework.ANGULAR:
        browser = output / "browser"
        if (browser / HTML_ENTRY).is_file():
            return browser
    return output
