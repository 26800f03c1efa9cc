from app.services.csv_import import normalize_row, parse_raffle_items_csv, read_raffle_items_csv


def test_parses_rows_with_camel_case_header():
    text = "id,name,description,prizeType\nP1,Toy,A toy,minor\nP2,Bike,A red bike,grand\n"

    rows = parse_raffle_items_csv(text)

    assert rows == [
        {"id": "P1", "name": "Toy", "description": "A toy", "prize_type": "minor"},
        {"id": "P2", "name": "Bike", "description": "A red bike", "prize_type": "grand"},
    ]


def test_quoted_fields_keep_embedded_commas():
    text = 'id,name,description,prizeType\nP1,"Toy, deluxe","Big, shiny, new",major\n'

    rows = parse_raffle_items_csv(text)

    assert rows[0]["name"] == "Toy, deluxe"
    assert rows[0]["description"] == "Big, shiny, new"
    assert rows[0]["prize_type"] == "major"


def test_blank_lines_whitespace_and_bom_are_ignored():
    text = "\ufeffid, name, description, prizeType\r\n\r\n P1 , Toy , A toy , minor \r\n\r\n"

    rows = parse_raffle_items_csv(text)

    assert rows == [{"id": "P1", "name": "Toy", "description": "A toy", "prize_type": "minor"}]


def test_missing_values_are_none():
    rows = parse_raffle_items_csv("id,name,description,prizeType\nP1,Toy\n")

    assert rows == [{"id": "P1", "name": "Toy", "description": None, "prize_type": None}]


def test_header_only_yields_no_rows():
    assert parse_raffle_items_csv("id,name,description,prizeType\n") == []
    assert parse_raffle_items_csv("") == []


def test_normalize_row_maps_prize_type_aliases():
    assert normalize_row({"prizeType": "minor", "id": "P1"}) == {"prize_type": "minor", "id": "P1"}


def test_rows_keep_their_source_line_numbers():
    text = (
        "id,name,description,prizeType\n"
        "\n"
        "P1,Toy,A toy,minor\n"
        'P2,Bike,"Red\nand fast",major\n'
        "P3,Kite,A kite,minor\n"
    )

    rows, line_numbers = read_raffle_items_csv(text)

    assert [row["id"] for row in rows] == ["P1", "P2", "P3"]
    assert line_numbers == [3, 4, 6]
    assert rows[1]["description"] == "Red\nand fast"
