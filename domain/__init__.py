"""Describes the Larder domain. Centres around `RecipeSearch`.

Why is this hard?

- Users type ingredients, not titles. Few recipes match all of them.
- An empty results page is a dead end, so the search broadens itself.
- Broadened results are not matches and must never look like matches.
- People go back and forth between results and recipes. Re-running the
  search every time is slow and reshuffles the page.

The recipe store lives behind a gateway. Should be able to fake that.
"""
