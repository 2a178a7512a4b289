"""CLI script to check the integrity of the static content tree.
Usage: python scripts/validate_content.py [--lang en] [--content-dir PATH]
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `learning_service` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from learning_service.utils.content_library import ContentLibrary, validate_unit


def main(lang: Optional[str] = None, content_dir: Optional[str] = None) -> int:
    """Walk every module and unit and print a per-unit report.

    Returns the number of problems found so the exit status can be used
    in CI. `lang` restricts the walk to a single language tree.
    """
    if content_dir is None:
        from learning_service.config import settings
        content_dir = settings.CONTENT_DIR
    root = pathlib.Path(content_dir)
    if not root.exists():
        print(f'Content folder not found at {root}')
        return 1
    library = ContentLibrary(root)
    languages = [lang] if lang else sorted(p.name for p in root.iterdir() if p.is_dir())
    problems = 0
    for language in languages:
        modules = library.get_modules(language)
        print(f'[{language}] {len(modules)} modules')
        for module in modules:
            units = library.get_units(language, module.module_id)
            print(f'  {module.module_id}: {len(units)} units')
            for meta in units:
                unit = library.get_unit_content(language, module.module_id, meta.unit_id)
                if unit is None:
                    print(f'    {meta.unit_id}: unreadable')
                    problems += 1
                    continue
                issues = validate_unit(unit)
                problems += len(issues)
                status = 'ok' if not issues else f'{len(issues)} problems'
                print(f'    {meta.unit_id}: {len(unit.exercises)} exercises, {status}')
                for issue in issues:
                    print(f'      - {issue}')
    print(f'Total problems: {problems}')
    return problems


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--lang', help='Only validate this language tree')
    parser.add_argument('--content-dir', help='Content root (defaults to CONTENT_DIR)')
    args = parser.parse_args()
    sys.exit(1 if main(lang=args.lang, content_dir=args.content_dir) else 0)
