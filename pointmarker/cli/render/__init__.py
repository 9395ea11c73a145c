import json
import logging
from gettext import gettext as _
from pathlib import Path

logger = logging.getLogger(__name__)

COMMAND_DESCRIPTION = _("Draw a saved annotation document over its image")


def command(subparser):
    subparser.add_argument("document", type=Path, help=_("Annotation JSON document"))
    subparser.add_argument("output", type=Path, help=_("Where to save the rendered image"))
    subparser.add_argument(
        "-i",
        "--image",
        dest="image",
        type=Path,
        help=_("Image to draw on; defaults to the document's imageReference"),
    )
    subparser.add_argument(
        "--overwrite",
        action="store_true",
        help=_("Overwrite the output image if it exists"),
    )

    def handle(args):
        import cv2

        from pointmarker.core.annotation import EditorSession
        from pointmarker.interfaces import OverlayRenderer

        assert args.document.is_file(), _("Document must exist and be a file")
        if not args.overwrite:
            assert not args.output.exists(), _(
                "Output exists, use --overwrite to ignore this"
            )
        with args.document.open("r") as f:
            data = json.load(f)

        image_path = args.image
        if image_path is None:
            reference = data.get("imageReference")
            assert reference, _("Document has no imageReference, pass --image")
            image_path = args.document.parent / reference

        image = cv2.imread(str(image_path))
        assert image is not None, _("Cannot read image {path}").format(path=image_path)
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

        session = EditorSession()
        session.load_image(image, str(image_path))
        session.from_dict(data)
        vis = OverlayRenderer(session).render()

        args.output.parent.mkdir(exist_ok=True, parents=True)
        cv2.imwrite(str(args.output), cv2.cvtColor(vis, cv2.COLOR_RGB2BGR))
        logger.info(_("Saved rendering to {path}").format(path=args.output))

    return handle
