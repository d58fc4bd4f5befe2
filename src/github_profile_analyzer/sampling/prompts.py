from textwrap import dedent
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field

from github_profile_analyzer.clients.models.github import ProfileData
from github_profile_analyzer.sampling.compress import (
    commits_to_compact_list,
    language_shares,
    pull_requests_to_compact_list,
    repositories_to_compact_list,
    strip_empty,
    strip_readme,
)

RECENT_PULL_REQUESTS_IN_ANALYSIS = 5
ROADMAP_PULL_REQUEST_BODY_CHARACTERS = 120

ANALYSIS_SYSTEM_PROMPT = "Expert technical recruiter. Respond with valid JSON only."
ROADMAP_SYSTEM_PROMPT = "Career coach. Respond with valid JSON only."


class PromptSection(BaseModel):
    title: str = Field(description="The title of the section.")
    level: int = Field(default=1, description="The level of the section.")
    section: str = Field(description="The section of the prompt.")

    def render_text(self) -> str:
        return f"{'#' * self.level} {self.title}\n{self.section}"


ANALYSIS_TASK = PromptSection(
    title="Task",
    section="Audit this GitHub profile for a hiring manager. Score every dimension from 0 to 100 and answer in JSON.",
)

ANALYSIS_RESPONSE_SCHEMA = PromptSection(
    title="Response Schema",
    section=dedent("""
        Respond with only a JSON object, no Markdown fences, in exactly this shape:
        {"profileScore":0,"scoreBreakdown":{"professionalism":0,"documentation":0,"technicalBreadth":0,"communityEngagement":0,"codeQuality":0},
        "contributionScore":0,"currentBio":"","suggestedBio":"",
        "readmeCritiques":[{"repoName":"","score":0,"strengths":[""],"improvements":[""]}],
        "suggestedSkills":[""],
        "actionItems":[{"title":"","description":"","priority":"high|medium|low","category":"profile|repository|documentation|community"}],
        "languageConfidence":[{"language":"","percentage":0,"confidence":"expert|proficient|familiar|beginner"}],
        "topImprovements":[""],"summary":"",
        "hiringInsights":{"headline":"","portfolioHealth":{"highImpact":[""],"clutter":[""]},
        "projectEnhancements":[{"repoName":"","suggestions":[""]}],"roadmap":[{"step":1,"title":"","description":""}]}}
        """).strip(),
)

SCORING_RUBRIC = PromptSection(
    title="Scoring",
    section=dedent("""
        professionalism: bio +20, avatar +10, location +10, company +15, blog +15, clear naming +10, social link +10, account older than 2 years +10
        documentation: README per repo +20 (max 60), descriptions +15, commit messages +15, wiki +10
        technicalBreadth: 3+ languages +30, 5+ languages +50, topics +20, project complexity +15, modern stack +15
        communityEngagement: stars (100+ gives 30, 10+ gives 15), forks +15, follower ratio above 1 +15, recent activity +20, external pull requests +20
        codeQuality: commit messages +25, organization +25, license +20, consistent style +15, CI +15
        profileScore = professionalism*0.15 + documentation*0.25 + technicalBreadth*0.20 + communityEngagement*0.20 + codeQuality*0.20
        contributionScore: +10 per merged external pull request (max 60), +5 per open external pull request (max 20), acceptance rate above 70% +20
        """).strip(),
)

ANALYSIS_GROUNDING = PromptSection(
    title="Grounding",
    section='Reference actual repositories. Do not invent data. If there is no usable data, return {"error":"insufficient_data"}.',
)

ROADMAP_TASK = PromptSection(
    title="Task",
    section="This developer contributes to other projects but has no original repositories. Use their pull request history to suggest where to grow.",
)

ROADMAP_RESPONSE_SCHEMA = PromptSection(
    title="Response Schema",
    section=dedent("""
        Respond with only a JSON object in exactly this shape:
        {"expertiseAreas":[{"title":"","description":""}],"projectIdea":{"title":"","description":"","techStack":[""]}}
        Return exactly 3 expertise areas. The project idea must be specific.
        """).strip(),
)


class PromptBuilder(BaseModel):
    sections: list[PromptSection] = Field(default_factory=list, description="The sections of the prompt.")

    def add_text_section(self, title: str, text: str | list[str], level: int = 1) -> Self:
        if not isinstance(text, list):
            text = [text]

        text_block = "\n".join([dedent(text) for text in text])

        self.sections.append(PromptSection(title=title, level=level, section=text_block))

        return self

    def add_yaml_section(self, title: str, obj: dict[str, Any], level: int = 1) -> Self:
        yaml_text: str = yaml.safe_dump(obj, sort_keys=False, allow_unicode=True).strip()

        self.sections.append(PromptSection(title=title, level=level, section=yaml_text))

        return self

    def add_prompt_section(self, section: PromptSection) -> Self:
        self.sections.append(section)
        return self

    def render_text(self) -> str:
        return "\n\n".join(section.render_text() for section in self.sections)


def profile_summary(profile_data: ProfileData) -> dict[str, Any]:
    """The user fields worth spending tokens on, with empty values dropped."""

    user = profile_data.user

    return strip_empty(  # pyright: ignore[reportAny]
        {
            "login": user.login,
            "name": user.name,
            "bio": user.bio,
            "company": user.company,
            "location": user.location,
            "blog": user.blog,
            "twitter": user.twitter_username,
            "avatar": bool(user.avatar_url),
            "repos": user.public_repos,
            "followers": user.followers,
            "following": user.following,
            "created": user.created_at.date().isoformat(),
        }
    )


def build_analysis_prompt(profile_data: ProfileData) -> str:
    """Build the full-analysis prompt. Sections are ordered so identical profiles produce identical prompts."""

    builder = PromptBuilder().add_prompt_section(section=ANALYSIS_TASK)

    builder.add_yaml_section(title="Profile", obj=profile_summary(profile_data=profile_data))

    repositories = sorted(profile_data.top_repos, key=lambda repository: repository.name.lower())
    builder.add_text_section(
        title=f"Repositories (total stars {profile_data.total_stars}, total forks {profile_data.total_forks})",
        text=repositories_to_compact_list(repositories=repositories) or "None",
    )

    builder.add_text_section(title="Languages", text=language_shares(language_stats=profile_data.language_stats) or "None")

    readmes = sorted(profile_data.readmes, key=lambda readme: readme.repo_name.lower())
    readme_text = "\n\n".join(f"[{readme.repo_name}]\n{strip_readme(text=readme.content)}" for readme in readmes)
    builder.add_text_section(title="READMEs", text=readme_text or "None")

    builder.add_text_section(title="Recent Commits", text=commits_to_compact_list(commits=profile_data.recent_commits) or "None")

    stats = profile_data.pr_stats
    pull_request_lines = pull_requests_to_compact_list(pull_requests=profile_data.pull_requests[:RECENT_PULL_REQUESTS_IN_ANALYSIS])
    builder.add_text_section(
        title="Pull Request Activity",
        text=[
            f"total {stats.total}, merged {stats.merged}, open {stats.open}, closed {stats.closed}, "
            + f"acceptance rate {stats.acceptance_rate}%, merged into other people's repositories {stats.third_party_merged}",
            pull_request_lines or "None",
        ],
    )

    builder.add_prompt_section(section=ANALYSIS_RESPONSE_SCHEMA)
    builder.add_prompt_section(section=SCORING_RUBRIC)
    builder.add_prompt_section(section=ANALYSIS_GROUNDING)

    return builder.render_text()


def build_roadmap_prompt(profile_data: ProfileData) -> str:
    """Build the growth-roadmap prompt from the user's pull requests and forks."""

    user = profile_data.user
    stats = profile_data.pr_stats

    builder = PromptBuilder().add_prompt_section(section=ROADMAP_TASK)

    builder.add_text_section(title="User", text=f"{user.login} ({user.name or 'no name'}): {user.bio or 'no bio'}")

    pull_request_lines: list[str] = []
    for pull_request in profile_data.pull_requests:
        line = pull_requests_to_compact_list(pull_requests=[pull_request])
        if body := pull_request.body.strip():
            line += f" | {body[:ROADMAP_PULL_REQUEST_BODY_CHARACTERS]}"
        pull_request_lines.append(line)

    builder.add_text_section(
        title="Pull Requests",
        text=[
            f"total {stats.total}, merged {stats.merged}, open {stats.open}, acceptance rate {stats.acceptance_rate}%",
            "\n".join(pull_request_lines) or "None",
        ],
    )

    forked_lines = [
        f"- {repository.name} ({repository.language or '?'}, ★{repository.stargazers_count})" for repository in profile_data.forked_repos
    ]
    builder.add_text_section(title="Forked Repositories", text="\n".join(forked_lines) or "None")

    builder.add_prompt_section(section=ROADMAP_RESPONSE_SCHEMA)

    return builder.render_text()
