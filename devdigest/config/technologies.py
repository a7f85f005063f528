"""Closed vocabulary of technologies recognised in content.

Matching is a case-insensitive substring test over title and body, so
short names like "AI" or "API" match inside longer words as well. The
order below is the order tags are reported in.
"""

TECHNOLOGIES: tuple[str, ...] = (
    "React",
    "Vue",
    "Angular",
    "Node.js",
    "Python",
    "JavaScript",
    "TypeScript",
    "Docker",
    "Kubernetes",
    "AWS",
    "Azure",
    "GCP",
    "MongoDB",
    "PostgreSQL",
    "Redis",
    "GraphQL",
    "REST",
    "API",
    "AI",
    "Machine Learning",
    "TensorFlow",
    "PyTorch",
    "Next.js",
    "Express",
    "Django",
    "Flask",
    "FastAPI",
)

MAX_TECHNOLOGIES = 5


def extract_technologies(
    text: str,
    vocabulary: tuple[str, ...] = TECHNOLOGIES,
    limit: int = MAX_TECHNOLOGIES,
) -> list[str]:
    """Return up to ``limit`` vocabulary entries found in ``text``."""
    lowered = text.lower()
    found: list[str] = []
    for tech in vocabulary:
        if tech.lower() in lowered:
            found.append(tech)
            if len(found) >= limit:
                break
    return found
