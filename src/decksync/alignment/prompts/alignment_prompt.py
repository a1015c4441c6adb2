deck_one_header = """\
[REFERENCE A: FIRST DECK (Deck 1)]
These slides are used in the first part of the talk, in this order:\
"""

deck_two_header = """\
[REFERENCE B: SECOND DECK (Deck 2)]
These slides are used in the second part of the talk and follow Deck 1:\
"""

frames_header = """\
[TARGET: VIDEO FRAME SEQUENCE]
Frames sampled from the recorded talk in chronological order, each preceded by its timestamp:\
"""

alignment_instructions = """\
You are an expert in analyzing recorded talks. Your job is to synchronize the video frames above with the \
original slides of Deck 1 and Deck 2.

Task: find the moment each slide (from Deck 1 or Deck 2) first appears clearly in the video frame sequence.

Rules (follow strictly):

1. Ignore non-slide frames.
   * Recordings often start with an introduction, a close-up of the speaker or a waiting screen. Only report \
an event once slide content clearly fills the frame and closely matches a page of a deck.
   * Do not force a match at 00:00 unless the frame at 00:00 really shows a slide.
   * Frames that only show the speaker, the audience or a transition animation must be skipped.

2. Deck switch (Deck 1 -> Deck 2).
   * The talk is continuous: pages of Deck 1 are shown first, then (possibly after a break or speaker-only \
segment) pages of Deck 2.
   * The switch from Deck 1 to Deck 2 happens exactly once. Never report a Deck 1 slide after a Deck 2 slide.
   * Do not report events for frames without slides during the switch.

3. Visual matching first.
   * Compare title text, chart shapes, images and layout.
   * Report only the first clear appearance of each slide, not later repeats.
   * Title: prefer the large title text at the top of the slide for `title`. If there is no title, \
summarize the core content of the slide.

4. Output (JSON).
   Return a JSON object with one array `transitions`. Each element is one slide change event:
   * `timestamp`: string (MM:SS), the exact time the slide first appears, copied from the frame label.
   * `deckId`: integer (1 or 2), the deck the slide belongs to.
   * `pageIndex`: integer, the page number within that deck as given in the "Deck N Page M" captions.
   * `title`: string, the slide title.
   * `reasoning`: string, a short justification (e.g. "title matches Deck 1 Page 3", "chart matches").
   * `confidence`: string, one of "High", "Medium", "Low".
   If no slide is visible in any frame, return {"transitions": []}.\
"""
