from screenpager.pages.segmenter import PageSegmenter, SegmenterState, combine_text

__all__ = ["PageSegmenter", "SegmenterState", "combine_text"]
