"""
Retrieval Constants

Word lists used by the rule-based query intent classifier. Numeric
thresholds and weight profiles are configuration (RetrievalSettings).
"""

# Leading words that mark a query as a question (English and German)
INTERROGATIVE_WORDS = frozenset(
    {
        "who", "what", "when", "where", "why", "how", "which", "whose", "whom",
        "is", "are", "was", "were", "do", "does", "did", "can", "could", "has",
        "have", "should", "would", "will",
        "wer", "was", "wann", "wo", "warum", "wie", "welche", "welcher", "welches",
        "wieso", "weshalb", "gibt",
    }
)

# Function words; everything else counts towards keyword density
STOPWORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "of", "in", "on", "at", "to", "for",
        "from", "by", "with", "about", "into", "over", "under", "near", "around",
        "after", "before", "during", "while", "like", "as", "than", "that", "this",
        "these", "those", "there", "here", "it", "its", "i", "me", "my", "we", "us",
        "our", "you", "your", "he", "she", "they", "them", "their", "his", "her",
        "be", "been", "being", "am", "is", "are", "was", "were", "do", "does", "did",
        "have", "has", "had", "can", "could", "would", "should", "will", "just",
        "some", "any", "anyone", "someone", "something", "very", "really", "also",
        "not", "no", "so", "if", "then", "all", "what", "who", "when", "where",
        "why", "how", "which",
        "der", "die", "das", "ein", "eine", "und", "oder", "mit", "von", "im", "in",
        "auf", "bei", "ich", "mich", "mir", "es", "ist", "sind", "war", "nach",
    }
)

# Boolean operators in websearch syntax
EXACT_MATCH_OPERATORS = frozenset({"AND", "OR", "NOT"})
