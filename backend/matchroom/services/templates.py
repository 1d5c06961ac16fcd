"""Prompt text sent to the generation service."""

# Three are drawn at random per generation call to vary the prompts.
CATEGORIES = [
    'food, dishes and cooking',
    'sports and exercise',
    'celebrities and entertainers',
    'anime, manga and games',
    'places, sights and travel',
    'companies, brands and shops',
    'music, artists and instruments',
    'movies, dramas and TV shows',
    'school and studying',
    'seasons, events and holidays',
    'animals and living things',
    'vehicles and transport',
    'home appliances and daily goods',
    'fashion, clothes and accessories',
    'hobbies, play and pastimes',
    'history, famous figures and culture',
    'jobs and work',
    'drinks',
    'sweets, snacks and desserts',
    'nature, weather and geography',
]

PROMPT_SYSTEM = """Write {count} prompts for a "think alike" party game. Every player answers the same prompt and the goal is for everyone to give the same answer.

Draw this batch from these categories:
* {categories} *

Rules: each prompt must be specific but common knowledge, so answers converge on one to three options.

How to write one:
1. Pick one of the categories above.
2. Narrow it with words like "classic", "famous", "typical" or "most popular".
3. Stay within what anyone would know.
4. If you name a specific person or thing, name exactly one.

Good prompts:
- The most popular conveyor-belt sushi topping?
- The classic gadget from Doraemon?
- The classic school lunch menu item?
- The most famous castle in Japan?

Avoid:
- prompts that are too abstract ("Spring?")
- two-step narrowing ("a famous artist's best-known song")
- prompts with open-ended answers ("your favourite food?"){used_block}

Output only the prompts, one per line. Never include example answers or explanations."""

PROMPT_USED_BLOCK = """

Already used prompts (never repeat these or anything close to them):
{used}"""

PROMPT_USER = "Write {count} prompts from the categories [{categories}]. Output only the prompts, no example answers."

COMMENTARY = """Prompt: {prompt}

These are the players' answers. Write {limit} short live-stream style reaction comments about them.

Make sure every player ({names}) gets at least one comment.

Comment style:
- short (roughly 2 to 6 words)
- react from different angles: agreeing, teasing, surprised, joking
- plenty of internet slang, but do not overuse laughter like "lol"
- no near-duplicates
- if everyone gave the same answer, lean towards congratulations
- include some comments that compare the answers

Answers:
{answers}

Put each comment on its own line. No numbering or bullets."""

NO_ANSWER = '(no answer)'
