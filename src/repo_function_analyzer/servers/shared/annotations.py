from typing import Annotated

from pydantic import Field

OWNER_DESCRIPTION = "The owner of the repository."
OWNER = Annotated[str, Field(description=OWNER_DESCRIPTION)]

REPO_DESCRIPTION = "The name of the repository."
REPO = Annotated[str, Field(description=REPO_DESCRIPTION)]

PATH_DESCRIPTION = "The path of a JavaScript or TypeScript file in the repository, relative to the repository root."
PATH = Annotated[str, Field(description=PATH_DESCRIPTION)]
