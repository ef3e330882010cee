from .title_graph import TitleGraph, TitleState

__all__ = ["TitleGraph", "TitleState"]
