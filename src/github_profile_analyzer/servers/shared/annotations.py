from typing import Annotated

from pydantic import Field

USERNAME_DESCRIPTION = "The GitHub username or profile URL to analyze, for example `torvalds` or `https://github.com/torvalds`."
USERNAME = Annotated[str, Field(description=USERNAME_DESCRIPTION)]

FORCE_REFRESH_DESCRIPTION = "Whether to ignore a cached analysis and analyze the profile again."
FORCE_REFRESH = Annotated[bool, Field(description=FORCE_REFRESH_DESCRIPTION)]
