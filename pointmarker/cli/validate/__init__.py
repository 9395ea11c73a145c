import json
import logging
import sys
from gettext import gettext as _
from pathlib import Path

logger = logging.getLogger(__name__)

COMMAND_DESCRIPTION = _("Report validation issues of a saved annotation document")


def format_issue(issue) -> str:
    location = f"{issue.entity_kind.value}[{issue.index}]"
    if issue.field:
        location += f".{issue.field}"
    return f"{location}: {issue.issue_kind.value}: {issue.reason}"


def command(subparser):
    subparser.add_argument("document", type=Path, help=_("Annotation JSON document"))
    subparser.add_argument(
        "--strict",
        action="store_true",
        help=_("Exit with status 1 when any issue is found"),
    )

    def handle(args):
        from pointmarker.core.annotation import EditorSession

        assert args.document.is_file(), _("Document must exist and be a file")
        with args.document.open("r") as f:
            data = json.load(f)

        session = EditorSession()
        session.from_dict(data)
        issues = session.validate()
        for issue in issues:
            print(format_issue(issue))
        if not issues:
            print(_("No issues found"))
        elif args.strict:
            sys.exit(1)
        return issues

    return handle
