from event_approval.services.similarity import are_similar, normalize_text, text_similarity


def test_normalize_text_collapses_whitespace_and_case():
    assert normalize_text("  AI   Workshop\n2024 ") == "ai workshop 2024"
    assert normalize_text(None) == ""


def test_identical_after_normalization():
    assert text_similarity("AI Workshop", "  ai   workshop ") == 1.0


def test_containment_scores_high():
    assert text_similarity("AI Workshop", "Advanced AI Workshop") == 0.85


def test_jaccard_overlap():
    # {robotics, expo, day} vs {robotics, club, day}: 2 shared of 4
    assert text_similarity("Robotics Expo Day", "Robotics Club Day") == 0.5


def test_are_similar_threshold():
    assert are_similar("Cloud Computing Seminar", "cloud computing seminar")
    assert not are_similar("Cloud Computing Seminar", "Annual Sports Meet")
    assert not are_similar("Robotics Expo Day", "Robotics Club Day", threshold=0.7)
    assert are_similar("Robotics Expo Day", "Robotics Club Day", threshold=0.5)


def test_blank_text_matches_nothing():
    assert text_similarity("", "AI Workshop") == 0.0
    assert text_similarity("AI Workshop", "   ") == 0.0
    assert text_similarity("", "") == 0.0
    assert not are_similar("", "AI Workshop")
